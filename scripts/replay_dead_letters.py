#!/usr/bin/env python3
"""CLI script to inspect and replay dead-lettered export items.

Usage:
    uv run python scripts/replay_dead_letters.py --list
    uv run python scripts/replay_dead_letters.py --replay 1718000000000-0
    uv run python scripts/replay_dead_letters.py --replay-all

Connects to Redis using REDIS_URL from environment or .env file. A
replayed item goes back on the work queue with a fresh retry budget.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.donation_sync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def run(list_only: bool, message_ids: list[str], replay_all: bool, count: int) -> None:
    from src.donation_sync.config import get_settings
    from src.donation_sync.core.redis import close_redis, get_redis_pool
    from src.donation_sync.queue.dlq import DeadLetterQueue

    settings = get_settings()
    dlq = DeadLetterQueue(get_redis_pool(), settings.KEY_PREFIX)
    queue_name = settings.QUEUE_NAME

    try:
        messages = await dlq.list_dlq_messages(queue_name, count=count)
        if list_only:
            print(f"{len(messages)} dead-lettered item(s) on {queue_name}:")
            for message_id, data in messages:
                print(
                    f"  {message_id}  submission={data.get('submission_id')}"
                    f"  retries={data.get('_dlq_retry_count')}"
                    f"  at={data.get('_dlq_timestamp')}"
                    f"  error={data.get('_dlq_error')}"
                )
            return

        if replay_all:
            message_ids = [message_id for message_id, _data in messages]

        for message_id in message_ids:
            try:
                new_id = await dlq.replay_message(queue_name, message_id)
            except ValueError as exc:
                print(f"  {message_id}: {exc}")
                continue
            print(f"  {message_id}: replayed as {new_id}")
    finally:
        await close_redis()


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect and replay dead-lettered exports")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--list", action="store_true", help="List dead-lettered items")
    group.add_argument("--replay", nargs="+", metavar="MESSAGE_ID", help="Replay specific items")
    group.add_argument("--replay-all", action="store_true", help="Replay every listed item")
    parser.add_argument("--count", type=int, default=50, help="Maximum items to read (default 50)")
    args = parser.parse_args()

    from src.donation_sync.observability.logging import configure_structlog

    configure_structlog()
    asyncio.run(run(args.list, args.replay or [], args.replay_all, args.count))


if __name__ == "__main__":
    main()
