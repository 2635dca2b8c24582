"""Service for Results module."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.config import settings
from src.core.events import DetailType, EventBus, EventSource
from src.core.exceptions import NotFoundError
from src.modules.academics.service import AcademicsService
from src.modules.results.gate import ResultAccessContext, ResultGate
from src.modules.results.models import ReportCard, ReportCardStatus, ResultReleasePolicy
from src.modules.results.schemas import PublishResultReady, ReportCardUpsert, ResultPolicyUpsert
from src.shared.utils.time import utcnow


class ResultService:
    def __init__(self, db: AsyncSession, school_id: int):
        self.db = db
        self.school_id = school_id
        self.audit = AuditService(db)
        self.academics = AcademicsService(db, school_id)

    # --- Release policy ---

    async def get_policy(self) -> ResultReleasePolicy | None:
        return await self.db.scalar(
            select(ResultReleasePolicy).where(ResultReleasePolicy.school_id == self.school_id)
        )

    async def upsert_policy(self, data: ResultPolicyUpsert, user_id: str | None) -> ResultReleasePolicy:
        policy = await self.get_policy()
        old_values = None
        if policy is None:
            policy = ResultReleasePolicy(school_id=self.school_id)
            self.db.add(policy)
        else:
            old_values = {
                "is_enabled": policy.is_enabled,
                "minimum_payment_percent": policy.minimum_payment_percent,
                "message_to_parent": policy.message_to_parent,
            }
        policy.is_enabled = data.is_enabled
        policy.minimum_payment_percent = data.minimum_payment_percent
        policy.message_to_parent = data.message_to_parent
        await self.db.flush()

        await self.audit.log(
            school_id=self.school_id,
            action=AuditAction.RESULT_POLICY_UPDATED,
            entity_type="ResultReleasePolicy",
            entity_id=policy.id,
            user_id=user_id,
            old_values=old_values,
            new_values=data.model_dump(),
        )
        await self.db.commit()
        await self.db.refresh(policy)
        return policy

    # --- Report cards ---

    async def _find_card(self, student_id: int, term_id: int) -> ReportCard | None:
        return await self.db.scalar(
            select(ReportCard).where(
                ReportCard.school_id == self.school_id,
                ReportCard.student_id == student_id,
                ReportCard.term_id == term_id,
            )
        )

    async def upsert_report_card(self, data: ReportCardUpsert) -> ReportCard:
        await self.academics.get_student(data.student_id)
        await self.academics.get_term(data.term_id)
        if data.class_group_id is not None:
            await self.academics.get_class_group(data.class_group_id)

        card = await self._find_card(data.student_id, data.term_id)
        if card is None:
            card = ReportCard(
                school_id=self.school_id,
                student_id=data.student_id,
                term_id=data.term_id,
                status=ReportCardStatus.DRAFT.value,
            )
            self.db.add(card)
        if data.class_group_id is not None:
            card.class_group_id = data.class_group_id
        if data.summary is not None:
            card.summary = data.summary
        await self.db.commit()
        await self.db.refresh(card)
        return card

    async def publish_result_ready(self, data: PublishResultReady, user_id: str | None) -> ReportCard:
        if data.report_card_id is not None:
            card = await self.db.scalar(
                select(ReportCard).where(
                    ReportCard.id == data.report_card_id,
                    ReportCard.school_id == self.school_id,
                )
            )
        else:
            card = await self._find_card(data.student_id, data.term_id)
        if card is None:
            raise NotFoundError("Report card", data.report_card_id or data.student_id)
        if data.class_group_id is not None:
            await self.academics.get_class_group(data.class_group_id)

        class_group_id = data.class_group_id or card.class_group_id
        if class_group_id is None:
            class_group_id, _ = await self.academics.resolve_class_group(card.student_id, card.term_id)
            card.class_group_id = class_group_id

        card.status = ReportCardStatus.PUBLISHED.value
        if card.published_at is None:
            card.published_at = utcnow()

        await EventBus(self.db).publish(
            EventSource.ACADEMICS,
            DetailType.RESULT_READY,
            {
                "schoolId": self.school_id,
                "studentId": card.student_id,
                "classGroupId": class_group_id,
                "termId": card.term_id,
                "reportCardId": card.id,
            },
        )
        await self.db.commit()
        await self.db.refresh(card)

        await self.audit.log_after_commit(
            school_id=self.school_id,
            action=AuditAction.RESULT_PUBLISHED,
            entity_type="ReportCard",
            entity_id=card.id,
            user_id=user_id,
            new_values={"student_id": card.student_id, "term_id": card.term_id},
        )
        return card

    async def report_cards_by_student_term(
        self,
        student_id: int,
        term_id: int,
        limit: int | None = None,
        user_id: str | None = None,
    ) -> list[ReportCard]:
        """Report cards behind the release gate; raises ResultsWithheldError when blocked."""
        ctx = ResultAccessContext(
            school_id=self.school_id,
            student_id=student_id,
            term_id=term_id,
            limit=limit or settings.report_cards_default_limit,
            user_id=user_id,
        )
        await ResultGate(self.db).run(ctx)
        return ctx.report_cards
