#!/usr/bin/env python3
"""
Poll one queue and process its messages.

Usage:
    python scripts/run_worker.py invoicing
    python scripts/run_worker.py receipts --once
"""

import argparse
import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import settings
from src.core.database.session import async_session
from src.core.logging import configure_logging, get_logger
from src.workers import WORKERS

logger = get_logger("workers.runner")


async def run(queue: str, once: bool, batch_size: int) -> None:
    worker_cls = WORKERS[queue]
    while True:
        async with async_session() as session:
            result = await worker_cls(session).run_once(batch_size)
        if result.received:
            logger.info(
                "batch processed",
                extra={
                    "queue": queue,
                    "received": result.received,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "dead_lettered": result.dead_lettered,
                },
            )
        if once:
            return
        if not result.received:
            await asyncio.sleep(settings.worker_poll_interval_seconds)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a queue worker")
    parser.add_argument("queue", choices=sorted(WORKERS))
    parser.add_argument("--once", action="store_true", help="Process one batch and exit")
    parser.add_argument("--batch-size", type=int, default=settings.worker_batch_size)
    args = parser.parse_args()

    configure_logging(level=settings.log_level.upper(), json_output=settings.log_json)
    try:
        asyncio.run(run(args.queue, args.once, args.batch_size))
    except KeyboardInterrupt:
        logger.info("worker stopped", extra={"queue": args.queue})


if __name__ == "__main__":
    main()
