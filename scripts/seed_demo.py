#!/usr/bin/env python3
"""
Seed a demo school: one session and term, two class groups, students,
fee items, a fee schedule, invoices and a result release policy.

Usage:
    python scripts/seed_demo.py --code DEMO --confirm

Requires migrations to be applied (alembic upgrade head).
"""

import argparse
import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.database.session import async_session
from src.modules.academics.schemas import (
    AcademicSessionCreate,
    ClassGroupCreate,
    EnrollmentCreate,
    StudentCreate,
    TermCreate,
)
from src.modules.academics.service import AcademicsService
from src.modules.fees.schemas import FeeItemCreate, FeeScheduleCreate, FeeScheduleLineCreate
from src.modules.fees.service import FeeService
from src.modules.invoices.schemas import GenerateClassInvoices
from src.modules.invoices.service import InvoiceService
from src.modules.results.schemas import ResultPolicyUpsert
from src.modules.results.service import ResultService
from src.modules.schools.service import SchoolService

SEED_USER = "seed-script"

STUDENTS = [
    ("ADM-001", "Adaeze", "Okafor", "JSS1 A"),
    ("ADM-002", "Tunde", "Bakare", "JSS1 A"),
    ("ADM-003", "Chiamaka", "Eze", "JSS1 A"),
    ("ADM-004", "Ibrahim", "Musa", "JSS1 B"),
    ("ADM-005", "Funke", "Adeyemi", "JSS1 B"),
]

FEE_ITEMS = [
    # name, category, optional, amount
    ("Tuition", "tuition", False, Decimal("2000.00")),
    ("Development levy", "levy", False, Decimal("500.00")),
    ("School bus", "transport", True, Decimal("500.00")),
    ("Lunch", "meals", True, Decimal("350.00")),
]


async def seed(code: str, name: str) -> None:
    async with async_session() as session:
        school = await SchoolService(session).register_school(code, name)
        academics = AcademicsService(session, school.id)

        year = date.today().year
        academic_session = await academics.create_session(
            AcademicSessionCreate(name=f"{year}/{year + 1}")
        )
        term = await academics.create_term(
            TermCreate(
                session_id=academic_session.id,
                name="First Term",
                starts_on=date(year, 9, 8),
                ends_on=date(year, 12, 12),
            )
        )

        groups = {}
        for arm in ("A", "B"):
            group = await academics.create_class_group(ClassGroupCreate(class_year="JSS1", arm=arm))
            groups[group.display_name] = group

        for admission_no, first, last, group_name in STUDENTS:
            student = await academics.create_student(
                StudentCreate(admission_no=admission_no, first_name=first, last_name=last)
            )
            await academics.enroll_student(
                EnrollmentCreate(
                    student_id=student.id,
                    term_id=term.id,
                    class_group_id=groups[group_name].id,
                )
            )

        fees = FeeService(session, school.id)
        lines = []
        for order, (item_name, category, optional, amount) in enumerate(FEE_ITEMS):
            item = await fees.create_fee_item(
                FeeItemCreate(name=item_name, category=category, is_optional=optional), SEED_USER
            )
            lines.append(FeeScheduleLineCreate(fee_item_id=item.id, amount=amount, sort_order=order))
        schedule = await fees.create_schedule(
            FeeScheduleCreate(
                name=f"JSS1 First Term {year}",
                term_id=term.id,
                session_id=academic_session.id,
                class_year="JSS1",
                lines=lines,
            ),
            SEED_USER,
        )

        invoices = InvoiceService(session, school.id)
        due_at = datetime.now(timezone.utc) + timedelta(days=30)
        total = 0
        for group in groups.values():
            result = await invoices.generate_class_invoices(
                GenerateClassInvoices(
                    term_id=term.id,
                    class_group_id=group.id,
                    fee_schedule_id=schedule.id,
                    session_id=academic_session.id,
                    due_at=due_at,
                ),
                SEED_USER,
            )
            total += result.created_count

        await ResultService(session, school.id).upsert_policy(
            ResultPolicyUpsert(
                is_enabled=True,
                minimum_payment_percent=50,
                message_to_parent="Please complete at least half of this term's fees to view results.",
            ),
            SEED_USER,
        )

        print(f"School {school.code} (id={school.id}) seeded: {len(STUDENTS)} students, {total} invoices")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo school")
    parser.add_argument("--code", default="DEMO")
    parser.add_argument("--name", default="Demo Academy")
    parser.add_argument("--confirm", action="store_true", help="Write to the database")
    args = parser.parse_args()
    if not args.confirm:
        print("Refusing to write without --confirm")
        sys.exit(1)
    asyncio.run(seed(args.code, args.name))


if __name__ == "__main__":
    main()
