"""Reminder sweep tests — detection, one reminder per stage entry,
re-notify interval, claim collisions, failure isolation, the periodic
loop with its lifespan hook, and the API.

The ``scheduler`` fixture counts calendar days with a 5-day threshold;
tests pass an explicit ``now`` so results do not depend on the clock.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import utcnow
from leavedesk.common.constants import LeaveStatus, NotificationType, ValidationStage
from leavedesk.config import settings
from leavedesk.holidays.models import Holiday
from leavedesk.leave.models import LeaveRequest
from leavedesk.main import lifespan
from leavedesk.notifications.email import EmailDispatcher
from leavedesk.notifications.models import Notification
from leavedesk.reminders.models import ReminderLog
from leavedesk.reminders.service import ReminderScheduler
from tests.conftest import (
    FAST_RETRY,
    _seed_request,
    auth_headers,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _days_ago(days: int) -> datetime:
    return NOW - timedelta(days=days)


async def _reload(db: AsyncSession, request_id) -> LeaveRequest:
    return (
        await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().one()


async def _claims(db: AsyncSession, request_id) -> list[ReminderLog]:
    return (
        await db.execute(
            select(ReminderLog)
            .where(ReminderLog.request_id == request_id)
            .order_by(ReminderLog.sequence)
        )
    ).scalars().all()


# ═════════════════════════════════════════════════════════════════════
# 1. Detection
# ═════════════════════════════════════════════════════════════════════


class TestFindDelayed:

    async def test_threshold_is_exclusive(self, db: AsyncSession, people, scheduler):
        late = await _seed_request(db, people.employee, stage_entered_at=_days_ago(6))
        await _seed_request(
            db, people.colleague, stage_entered_at=_days_ago(5),
            start_date=date(2024, 2, 5), end_date=date(2024, 2, 9),
        )

        delayed = await scheduler.find_delayed(db, now=NOW)
        assert [d.id for d in delayed] == [late.id]
        assert delayed[0].days_delayed == 6
        assert delayed[0].stage == ValidationStage.direction
        assert delayed[0].employee_name == "Awa Diallo"

    async def test_threshold_override(self, db: AsyncSession, people, scheduler):
        await _seed_request(db, people.employee, stage_entered_at=_days_ago(3))

        assert await scheduler.find_delayed(db, now=NOW) == []
        assert len(await scheduler.find_delayed(db, 2, now=NOW)) == 1

    async def test_final_requests_ignored(self, db: AsyncSession, people, scheduler):
        for status in (
            LeaveStatus.validated_by_dg,
            LeaveStatus.rejected_by_direction,
            LeaveStatus.rejected_by_dgpec,
            LeaveStatus.rejected_by_dg,
        ):
            await _seed_request(db, people.employee, status=status, stage_entered_at=_days_ago(30))

        assert await scheduler.find_delayed(db, now=NOW) == []

    async def test_validators_follow_the_stage(self, db: AsyncSession, people, scheduler):
        at_direction = await _seed_request(db, people.employee, stage_entered_at=_days_ago(10))
        at_dg = await _seed_request(
            db, people.colleague,
            status=LeaveStatus.validated_by_dgpec,
            stage_entered_at=_days_ago(8),
        )

        delayed = {d.id: d for d in await scheduler.find_delayed(db, now=NOW)}
        assert [v.id for v in delayed[at_direction.id].validators] == [people.direction.id]
        assert [v.email for v in delayed[at_dg.id].validators] == [people.dg.email]
        assert delayed[at_dg.id].stage == ValidationStage.dg

    async def test_oldest_first(self, db: AsyncSession, people, scheduler):
        newer = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        older = await _seed_request(
            db, people.colleague, stage_entered_at=_days_ago(12),
        )

        assert [d.id for d in await scheduler.find_delayed(db, now=NOW)] == [older.id, newer.id]

    async def test_business_days_skip_weekends_and_holidays(
        self, db: AsyncSession, people, mailer, session_factory,
    ):
        working = ReminderScheduler(session_factory, mailer, threshold_days=2)
        # Entered Friday 8 March
        await _seed_request(
            db, people.employee,
            stage_entered_at=datetime(2024, 3, 8, 16, 0, tzinfo=timezone.utc),
        )

        monday = datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)
        wednesday = datetime(2024, 3, 13, 9, 0, tzinfo=timezone.utc)
        assert await working.find_delayed(db, now=monday) == []
        [item] = await working.find_delayed(db, now=wednesday)
        assert item.days_delayed == 3

        db.add(Holiday(date=date(2024, 3, 12), description="Holiday"))
        await db.flush()
        assert await working.find_delayed(db, now=wednesday) == []


# ═════════════════════════════════════════════════════════════════════
# 2. Sweep
# ═════════════════════════════════════════════════════════════════════


class TestScan:

    async def test_scan_reminds_stage_validators(self, db: AsyncSession, people, scheduler, mailer):
        req = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        await db.commit()

        reminded = await scheduler.scan(now=NOW)

        assert [r.id for r in reminded] == [req.id]
        assert reminded[0].reminder_count == 1
        assert [m.to for m in mailer.outbox] == [people.direction.email]
        assert "7 day(s)" in mailer.outbox[0].content

        stored = await _reload(db, req.id)
        assert stored.reminder_count == 1
        assert stored.last_reminder_at.replace(tzinfo=timezone.utc) == NOW

        [claim] = await _claims(db, req.id)
        assert (claim.sequence, claim.days_delayed) == (1, 7)
        assert claim.recipients == [str(people.direction.id)]

        notes = (
            await db.execute(
                select(Notification).where(Notification.type == NotificationType.reminder)
            )
        ).scalars().all()
        assert [n.recipient_id for n in notes] == [people.direction.id]

    async def test_one_reminder_per_stage_entry(self, db: AsyncSession, people, scheduler, mailer):
        req = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        await db.commit()

        assert len(await scheduler.scan(now=NOW)) == 1
        assert await scheduler.scan(now=NOW) == []
        assert await scheduler.scan(now=NOW + timedelta(days=10)) == []

        assert len(mailer.outbox) == 1
        assert len(await _claims(db, req.id)) == 1

    async def test_new_stage_entry_is_reminded_again(self, db: AsyncSession, people, scheduler, mailer):
        req = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        await db.commit()
        await scheduler.scan(now=NOW)

        # The request moved on to DGPEC and stalled there as well
        stored = await _reload(db, req.id)
        stored.status = LeaveStatus.validated_by_direction
        stored.stage_entered_at = NOW + timedelta(days=1)
        stored.reminder_count = 0
        stored.last_reminder_at = None
        await db.commit()

        later = NOW + timedelta(days=8)
        reminded = await scheduler.scan(now=later)
        assert [r.stage for r in reminded] == [ValidationStage.dgpec]
        assert [m.to for m in mailer.outbox] == [people.direction.email, people.dgpec.email]

        claims = await _claims(db, req.id)
        assert [(c.stage, c.sequence) for c in claims] == [
            (ValidationStage.direction, 1),
            (ValidationStage.dgpec, 1),
        ]

    async def test_renotify_interval(self, db: AsyncSession, people, mailer, session_factory):
        scheduler = ReminderScheduler(
            session_factory, mailer,
            threshold_days=5, business_days=False, renotify_days=2,
        )
        req = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        await db.commit()

        assert len(await scheduler.scan(now=NOW)) == 1
        assert await scheduler.scan(now=NOW + timedelta(days=1)) == []
        [again] = await scheduler.scan(now=NOW + timedelta(days=2))
        assert again.reminder_count == 2

        assert [c.sequence for c in await _claims(db, req.id)] == [1, 2]
        assert len(mailer.outbox) == 2

    async def test_lost_claim_sends_nothing(self, db: AsyncSession, people, scheduler, mailer):
        req = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        # Another sweep already claimed reminder #1 for this stage entry
        db.add(
            ReminderLog(
                request_id=req.id,
                stage=ValidationStage.direction,
                stage_entered_at=req.stage_entered_at,
                sequence=1,
                days_delayed=7,
                recipients=[],
                sent_at=NOW,
            )
        )
        await db.commit()

        assert await scheduler.scan(now=NOW) == []
        assert mailer.outbox == []
        assert (await _reload(db, req.id)).reminder_count == 0

    async def test_failure_does_not_stop_the_sweep(self, db: AsyncSession, people, session_factory):
        def relay(request: httpx.Request) -> httpx.Response:
            if json.loads(request.content)["to"] == people.direction.email:
                return httpx.Response(502)
            return httpx.Response(202)

        flaky = EmailDispatcher(
            "http://mail.test/send", retry=FAST_RETRY, transport=httpx.MockTransport(relay),
        )
        scheduler = ReminderScheduler(session_factory, flaky, business_days=False)

        failing = await _seed_request(db, people.employee, stage_entered_at=_days_ago(9))
        healthy = await _seed_request(
            db, people.colleague,
            status=LeaveStatus.validated_by_direction,
            stage_entered_at=_days_ago(8),
        )
        await db.commit()

        reminded = await scheduler.scan(now=NOW)
        assert [r.id for r in reminded] == [healthy.id]

        # The failed reminder left no trace and stays due
        assert await _claims(db, failing.id) == []
        assert (await _reload(db, failing.id)).reminder_count == 0
        assert (await _reload(db, healthy.id)).reminder_count == 1

    async def test_no_validator_still_records_claim(self, db: AsyncSession, people, scheduler, mailer):
        people.dg.is_active = False
        req = await _seed_request(
            db, people.employee,
            status=LeaveStatus.validated_by_dgpec,
            stage_entered_at=_days_ago(7),
        )
        await db.commit()

        [item] = await scheduler.scan(now=NOW)
        assert item.id == req.id
        assert item.validators == []
        assert mailer.outbox == []

    async def test_cancelled_mid_send_leaves_no_claim(
        self, db: AsyncSession, people, session_factory,
    ):
        sending = asyncio.Event()

        class StalledMailer(EmailDispatcher):
            async def send(self, to, subject, body):
                sending.set()
                await asyncio.Event().wait()

        scheduler = ReminderScheduler(
            session_factory, StalledMailer("", retry=FAST_RETRY), business_days=False,
        )
        req = await _seed_request(db, people.employee, stage_entered_at=_days_ago(7))
        await db.commit()

        sweep = asyncio.create_task(scheduler.scan(now=NOW))
        await asyncio.wait_for(sending.wait(), timeout=5)
        sweep.cancel()
        with pytest.raises(asyncio.CancelledError):
            await sweep

        assert await _claims(db, req.id) == []
        stored = await _reload(db, req.id)
        assert stored.reminder_count == 0
        assert stored.last_reminder_at is None


# ═════════════════════════════════════════════════════════════════════
# 3. Periodic sweep
# ═════════════════════════════════════════════════════════════════════


async def _until(condition, timeout: float = 5.0) -> None:
    async def wait():
        while not condition():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(wait(), timeout)


class _RecordingSweep:
    """Stands in for the scheduler on app.state during lifespan tests."""

    def __init__(self):
        self.intervals: list[float] = []
        self.cancelled = False

    async def run_forever(self, interval_seconds: float) -> None:
        self.intervals.append(interval_seconds)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class TestSweepLoop:

    async def test_run_forever_sweeps_until_cancelled(
        self, db: AsyncSession, people, scheduler, mailer,
    ):
        req = await _seed_request(
            db, people.employee, stage_entered_at=utcnow() - timedelta(days=7),
        )
        await db.commit()

        loop = asyncio.create_task(scheduler.run_forever(3600))
        await _until(lambda: len(mailer.outbox) == 1)
        loop.cancel()
        with pytest.raises(asyncio.CancelledError):
            await loop

        assert (await _reload(db, req.id)).reminder_count == 1
        assert [m.to for m in mailer.outbox] == [people.direction.email]

    async def test_failed_sweep_does_not_end_the_loop(self, scheduler, monkeypatch):
        calls: list[int] = []

        async def scan():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database unavailable")
            return []

        monkeypatch.setattr(scheduler, "scan", scan)

        loop = asyncio.create_task(scheduler.run_forever(0))
        await _until(lambda: len(calls) >= 2)
        loop.cancel()
        with pytest.raises(asyncio.CancelledError):
            await loop

    async def test_lifespan_starts_and_cancels_the_sweep(self, app, monkeypatch):
        monkeypatch.setattr(settings, "REMINDER_SWEEP_ENABLED", True)
        monkeypatch.setattr(settings, "REMINDER_SWEEP_INTERVAL_MINUTES", 30)
        sweep = _RecordingSweep()
        app.state.reminders = sweep

        async with lifespan(app):
            await _until(lambda: sweep.intervals == [1800])
            assert not sweep.cancelled

        assert sweep.cancelled

    async def test_lifespan_without_sweep(self, app, monkeypatch):
        monkeypatch.setattr(settings, "REMINDER_SWEEP_ENABLED", False)
        sweep = _RecordingSweep()
        app.state.reminders = sweep

        async with lifespan(app):
            await asyncio.sleep(0.05)

        assert sweep.intervals == []
        assert not sweep.cancelled


# ═════════════════════════════════════════════════════════════════════
# 4. API
# ═════════════════════════════════════════════════════════════════════


class TestReminderAPI:

    async def test_delayed_count_and_list(self, client, db, people):
        await _seed_request(db, people.employee, stage_entered_at=utcnow() - timedelta(days=9))
        await _seed_request(
            db, people.colleague, stage_entered_at=utcnow() - timedelta(days=1),
        )
        await db.commit()

        resp = await client.get(
            "/api/v1/reminders/delayed/count", headers=auth_headers(people.dgpec),
        )
        assert resp.status_code == 200
        assert resp.json() == {"threshold_days": 5, "count": 1}

        resp = await client.get(
            "/api/v1/reminders/delayed",
            params={"threshold_days": 0},
            headers=auth_headers(people.admin),
        )
        assert len(resp.json()) == 2

    async def test_manual_scan(self, client, db, people, mailer):
        req = await _seed_request(
            db, people.employee, stage_entered_at=utcnow() - timedelta(days=9),
        )
        await db.commit()

        resp = await client.post("/api/v1/reminders/scan", headers=auth_headers(people.direction))
        assert resp.status_code == 200
        body = resp.json()
        assert body["threshold_days"] == 5
        assert [r["id"] for r in body["reminded"]] == [str(req.id)]
        assert len(mailer.outbox) == 1

        resp = await client.post("/api/v1/reminders/scan", headers=auth_headers(people.direction))
        assert resp.json()["reminded"] == []

    async def test_employee_forbidden(self, client, people):
        resp = await client.get(
            "/api/v1/reminders/delayed", headers=auth_headers(people.employee),
        )
        assert resp.status_code == 403
