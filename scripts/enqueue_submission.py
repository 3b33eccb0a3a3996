#!/usr/bin/env python3
"""CLI script to queue submissions for export to Salesforce.

Usage:
    uv run python scripts/enqueue_submission.py 1234 1235
    uv run python scripts/enqueue_submission.py --check 1234

Connects to Redis using REDIS_URL from environment or .env file. With
--check, each submission is loaded first and only queued when the
eligibility gate would let it through.
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


async def enqueue(submission_ids: list[str], check: bool) -> int:
    """Queue the given submissions; returns the number queued."""
    from src.donation_sync.config import get_settings
    from src.donation_sync.core.redis import close_redis, get_redis_pool
    from src.donation_sync.export.gate import EligibilityGate
    from src.donation_sync.main import build_work_queue
    from src.donation_sync.submissions.store import RedisSubmissionStore

    settings = get_settings()
    redis = get_redis_pool()
    queue = build_work_queue(settings, redis)
    store = RedisSubmissionStore(redis, settings.KEY_PREFIX)
    gate = EligibilityGate(settings.EXPORT_MISSING_BANK_INTEREST)

    queued = 0
    try:
        for submission_id in submission_ids:
            if check:
                submission = await store.load(submission_id)
                if submission is None:
                    print(f"  {submission_id}: not found, skipped")
                    continue
                decision = gate.evaluate(submission)
                if not decision.proceed:
                    print(f"  {submission_id}: {decision.reason}, skipped")
                    continue
            message_id = await queue.enqueue(submission_id)
            print(f"  {submission_id}: queued as {message_id}")
            queued += 1
    finally:
        await close_redis()

    print(f"Queued {queued} of {len(submission_ids)} submission(s) on {settings.QUEUE_NAME}")
    return queued


def main() -> None:
    parser = argparse.ArgumentParser(description="Queue submissions for Salesforce export")
    parser.add_argument("submission_ids", nargs="+", help="Submission ids to queue")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only queue submissions the eligibility gate accepts",
    )
    args = parser.parse_args()

    from src.donation_sync.observability.logging import configure_structlog

    configure_structlog()
    asyncio.run(enqueue(args.submission_ids, args.check))


if __name__ == "__main__":
    main()
