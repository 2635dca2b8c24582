#!/usr/bin/env python3
"""
Publish the daily invoice.overdue.scan event for every active school.

Run from a scheduler once a day:
    python scripts/publish_overdue_scan.py
    python scripts/publish_overdue_scan.py --school-id 3
"""

import argparse
import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import settings
from src.core.database.session import async_session
from src.core.logging import configure_logging
from src.modules.ops.service import OpsService
from src.modules.schools.service import SchoolService


async def publish(school_id: int | None) -> int:
    async with async_session() as session:
        if school_id is not None:
            school_ids = [(await SchoolService(session).get_school(school_id)).id]
        else:
            school_ids = await SchoolService(session).list_active_school_ids()
        for sid in school_ids:
            await OpsService(session, sid).request_overdue_scan()
    return len(school_ids)


def main() -> None:
    parser = argparse.ArgumentParser(description="Publish overdue scan events")
    parser.add_argument("--school-id", type=int, default=None)
    args = parser.parse_args()

    configure_logging(level=settings.log_level.upper(), json_output=settings.log_json)
    count = asyncio.run(publish(args.school_id))
    print(f"Overdue scan requested for {count} school(s)")


if __name__ == "__main__":
    main()
