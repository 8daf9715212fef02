#!/usr/bin/env python3
"""Run one reminder sweep — nudge validators about stalled leave requests.

Purpose: cron-friendly alternative to the in-process periodic sweep
(set REMINDER_SWEEP_ENABLED=false on the API when using this).

Usage:
    python -m scripts.run_reminders                    # threshold from settings
    python -m scripts.run_reminders --threshold 3
    python -m scripts.run_reminders --dry-run          # list delayed, send nothing

Reads the same .env as the API (DATABASE_URL, JWT_SECRET, EMAIL_DISPATCH_URL, ...).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from leavedesk.config import settings  # noqa: E402
from leavedesk.database import async_session_factory, engine, session_scope  # noqa: E402
from leavedesk.notifications.email import EmailDispatcher  # noqa: E402
from leavedesk.reminders.service import ReminderScheduler  # noqa: E402

# Every ORM model must be registered before the first query
import leavedesk.attachments.models  # noqa: E402,F401
import leavedesk.employees.models  # noqa: E402,F401
import leavedesk.holidays.models  # noqa: E402,F401
import leavedesk.leave.models  # noqa: E402,F401
import leavedesk.notifications.models  # noqa: E402,F401
import leavedesk.quotas.models  # noqa: E402,F401
import leavedesk.reminders.models  # noqa: E402,F401

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("run_reminders")


async def run(threshold: int | None, dry_run: bool) -> int:
    scheduler = ReminderScheduler.from_settings(
        settings, async_session_factory, EmailDispatcher.from_settings(settings),
    )
    try:
        if dry_run:
            async with session_scope() as db:
                delayed = await scheduler.find_delayed(db, threshold)
            for item in delayed:
                logger.info(
                    "DELAYED %s — %s, %s stage, %d day(s), %d reminder(s) so far",
                    item.id, item.employee_name, item.stage.value,
                    item.days_delayed, item.reminder_count,
                )
            logger.info("%d delayed request(s); dry run, nothing sent", len(delayed))
            return 0

        reminded = await scheduler.scan(threshold)
        logger.info("%d reminder(s) sent", len(reminded))
        return 0
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="LeaveDesk reminder sweep — one pass over stalled requests",
    )
    parser.add_argument(
        "--threshold", type=int, default=None,
        help=f"Days at a stage before reminding (default {settings.REMINDER_THRESHOLD_DAYS})",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="List delayed requests without sending anything",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.threshold, args.dry_run)))


if __name__ == "__main__":
    main()
