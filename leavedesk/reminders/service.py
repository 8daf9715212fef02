"""Reminder sweep — nudges validators about requests stalled at their stage.

Business rules:
  - a request is delayed when its time in the current stage exceeds the
    threshold (working days by default, entry day excluded, today included)
  - one reminder per stage entry, unless a re-notify interval is configured
  - the ReminderLog claim is written before sending; a lost claim means a
    concurrent sweep owns that reminder
  - each request is its own unit of work, so one failure never stops the sweep
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leavedesk.common.audit import as_utc, utcnow
from leavedesk.common.constants import DISPLAY_DATE_FORMAT, ValidationStage
from leavedesk.database import session_scope
from leavedesk.employees.models import Employee
from leavedesk.employees.schemas import ValidatorContact
from leavedesk.employees.service import validators_for_stage
from leavedesk.holidays.service import HolidayService
from leavedesk.leave.calculator import business_days_between
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.workflow import STAGE_LABELS, TRANSITIONS, stage_for
from leavedesk.notifications.email import EmailDispatcher
from leavedesk.notifications.service import notify_reminder
from leavedesk.reminders.models import ReminderLog
from leavedesk.reminders.schemas import DelayedRequest

logger = logging.getLogger(__name__)


class ReminderScheduler:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        mailer: EmailDispatcher,
        *,
        threshold_days: int = 5,
        business_days: bool = True,
        renotify_days: int = 0,
    ) -> None:
        self.session_factory = session_factory
        self.mailer = mailer
        self.threshold_days = threshold_days
        self.business_days = business_days
        self.renotify_days = renotify_days

    @classmethod
    def from_settings(cls, settings, session_factory, mailer) -> "ReminderScheduler":
        return cls(
            session_factory,
            mailer,
            threshold_days=settings.REMINDER_THRESHOLD_DAYS,
            business_days=settings.REMINDER_BUSINESS_DAYS,
            renotify_days=settings.REMINDER_RENOTIFY_DAYS,
        )

    # ── Detection ───────────────────────────────────────────────────

    def _elapsed(self, since: date, until: date, holidays: Mapping[date, str]) -> int:
        if self.business_days:
            return business_days_between(since, until, holidays)
        return max(0, (until - since).days)

    async def find_delayed(
        self,
        db: AsyncSession,
        threshold_days: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> list[DelayedRequest]:
        """Non-terminal requests stalled beyond the threshold, oldest first."""
        now = as_utc(now) if now else utcnow()
        threshold = self.threshold_days if threshold_days is None else threshold_days

        rows = (
            await db.execute(
                select(LeaveRequest, Employee)
                .join(Employee, Employee.id == LeaveRequest.employee_id)
                .where(LeaveRequest.status.in_(list(TRANSITIONS)))
                .order_by(LeaveRequest.stage_entered_at)
            )
        ).all()
        if not rows:
            return []

        holidays: dict[date, str] = {}
        if self.business_days:
            earliest = min(as_utc(r.stage_entered_at).date() for r, _ in rows)
            holidays = await HolidayService.holiday_map(db, earliest, now.date())

        contacts: dict[tuple[ValidationStage, Optional[str]], list[ValidatorContact]] = {}
        delayed: list[DelayedRequest] = []
        for leave_req, employee in rows:
            entered = as_utc(leave_req.stage_entered_at)
            days = self._elapsed(entered.date(), now.date(), holidays)
            if days <= threshold:
                continue

            stage = stage_for(leave_req.status)
            key = (stage, employee.department)
            if key not in contacts:
                contacts[key] = [
                    ValidatorContact(id=v.id, name=v.full_name, email=v.email)
                    for v in await validators_for_stage(db, stage, employee.department)
                ]

            delayed.append(
                DelayedRequest(
                    id=leave_req.id,
                    employee_name=employee.full_name,
                    employee_email=employee.email,
                    department=employee.department,
                    leave_type=leave_req.leave_type,
                    start_date=leave_req.start_date,
                    status=leave_req.status,
                    stage=stage,
                    stage_entered_at=entered,
                    days_delayed=days,
                    reminder_count=leave_req.reminder_count,
                    last_reminder_at=as_utc(leave_req.last_reminder_at),
                    validators=contacts[key],
                )
            )
        return delayed

    def _is_due(self, item: DelayedRequest, now: datetime) -> bool:
        # reminder_count is reset whenever the request changes stage
        if item.reminder_count == 0 or item.last_reminder_at is None:
            return True
        if self.renotify_days <= 0:
            return False
        return now - item.last_reminder_at >= timedelta(days=self.renotify_days)

    # ── Sending ─────────────────────────────────────────────────────

    async def _remind(self, item: DelayedRequest, now: datetime) -> Optional[DelayedRequest]:
        """Claim, send and record one reminder inside its own transaction."""
        async with session_scope(self.session_factory) as db:
            leave_req = (
                await db.execute(
                    select(LeaveRequest)
                    .where(LeaveRequest.id == item.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalars().first()
            if (
                leave_req is None
                or as_utc(leave_req.stage_entered_at) != item.stage_entered_at
                or leave_req.reminder_count != item.reminder_count
            ):
                logger.info("Request %s moved on since detection, skipping", item.id)
                return None

            sequence = leave_req.reminder_count + 1
            db.add(
                ReminderLog(
                    request_id=leave_req.id,
                    stage=item.stage,
                    stage_entered_at=leave_req.stage_entered_at,
                    sequence=sequence,
                    days_delayed=item.days_delayed,
                    recipients=[str(v.id) for v in item.validators],
                    sent_at=now,
                )
            )
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                logger.info("Reminder %d for request %s already claimed", sequence, item.id)
                return None

            if not item.validators:
                logger.warning(
                    "No active %s validator to remind for request %s",
                    STAGE_LABELS[item.stage], item.id,
                )

            subject = f"Reminder: leave request of {item.employee_name} awaiting validation"
            body = (
                f"The {item.leave_type.value} leave request of {item.employee_name} "
                f"(starting {item.start_date.strftime(DISPLAY_DATE_FORMAT)}) has been "
                f"waiting for {STAGE_LABELS[item.stage]} validation for "
                f"{item.days_delayed} day(s)."
            )
            for validator in item.validators:
                # ExternalServiceError here rolls the claim back with the rest
                await self.mailer.send(validator.email, subject, body)
                await notify_reminder(
                    db,
                    leave_req,
                    validator.id,
                    employee_name=item.employee_name,
                    days_delayed=item.days_delayed,
                )

            leave_req.reminder_count = sequence
            leave_req.last_reminder_at = now
            await db.flush()

        return item.model_copy(update={"reminder_count": sequence, "last_reminder_at": now})

    async def scan(
        self,
        threshold_days: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> list[DelayedRequest]:
        """One sweep. Returns the requests reminded during this sweep."""
        now = as_utc(now) if now else utcnow()
        async with session_scope(self.session_factory) as db:
            delayed = await self.find_delayed(db, threshold_days, now=now)

        reminded: list[DelayedRequest] = []
        failed: list[uuid.UUID] = []
        for item in delayed:
            if not self._is_due(item, now):
                continue
            try:
                sent = await self._remind(item, now)
            except Exception:  # noqa: BLE001
                logger.exception("Reminder for request %s failed", item.id)
                failed.append(item.id)
                continue
            if sent is not None:
                reminded.append(sent)

        logger.info(
            "Reminder sweep: %d delayed, %d reminded, %d failed",
            len(delayed), len(reminded), len(failed),
        )
        return reminded

    async def run_forever(self, interval_seconds: float) -> None:
        """Sweep every *interval_seconds* until cancelled."""
        logger.info("Reminder sweep started (every %.0f s)", interval_seconds)
        while True:
            try:
                await self.scan()
            except Exception:  # noqa: BLE001
                logger.exception("Reminder sweep failed")
            await asyncio.sleep(interval_seconds)
