#!/usr/bin/env python3
"""
Move dead-lettered messages back to their source queue.

Usage:
    python scripts/redrive_dlq.py --stats
    python scripts/redrive_dlq.py invoicing --limit 50
"""

import argparse
import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import settings
from src.core.database.session import async_session
from src.core.events import QueueConsumer, QueueName, queue_config
from src.core.logging import configure_logging
from src.modules.ops.service import queue_stats


async def print_stats() -> None:
    async with async_session() as session:
        for stats in await queue_stats(session):
            flags = [
                name
                for name, raised in (
                    ("AGE", stats.age_alarm),
                    ("DEPTH", stats.depth_alarm),
                    ("DLQ", stats.dead_letter_alarm),
                )
                if raised
            ]
            print(
                f"{stats.queue:<10} visible={stats.visible:<6} in_flight={stats.in_flight:<6} "
                f"oldest={stats.oldest_age_seconds}s dlq={stats.dead_letters} {' '.join(flags)}"
            )


async def redrive(queue: str, limit: int) -> int:
    async with async_session() as session:
        return await QueueConsumer(session, queue_config(queue)).redrive(limit=limit)


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect queues and redrive dead letters")
    parser.add_argument("queue", nargs="?", choices=[q.value for q in QueueName])
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--stats", action="store_true", help="Print queue stats and exit")
    args = parser.parse_args()

    configure_logging(level=settings.log_level.upper(), json_output=settings.log_json)
    if args.stats or not args.queue:
        asyncio.run(print_stats())
        return
    count = asyncio.run(redrive(args.queue, args.limit))
    print(f"Redriven {count} message(s) to {args.queue}")


if __name__ == "__main__":
    main()
