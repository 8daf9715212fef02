"""Dashboard service — read-only decision statistics.

All methods are static async, following the project convention. Counts are
grouped at DB level; durations are averaged in Python so the same code runs
on PostgreSQL and SQLite.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import as_utc
from leavedesk.common.constants import (
    VALIDATOR_ROLES,
    Decision,
    LeaveCategory,
    LeaveStatus,
    ValidationStage,
)
from leavedesk.common.exceptions import InvalidRangeError
from leavedesk.dashboard.schemas import (
    DashboardSummaryResponse,
    DepartmentStats,
    LeaveTypeStats,
    MonthlyStats,
    MonthlyTrendResponse,
    ValidatorStats,
)
from leavedesk.employees.models import Employee
from leavedesk.employees.service import direction_scope
from leavedesk.leave.models import LeaveRequest, ValidationStep
from leavedesk.leave.workflow import stage_for_role, status_awaiting
from leavedesk.reminders.service import ReminderScheduler


def _bounds(start: Optional[date], end: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Half-open UTC datetime window covering whole days."""
    if start and end and start > end:
        raise InvalidRangeError(start, end)
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
    upper = (
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
        if end else None
    )
    return lower, upper


def _rate(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 2) if whole else 0.0


def _hours(durations: list[timedelta]) -> float:
    if not durations:
        return 0.0
    return round(sum(d.total_seconds() for d in durations) / len(durations) / 3600, 2)


def _outcome(status: LeaveStatus) -> str:
    if status == LeaveStatus.validated_by_dg:
        return "approved"
    if status.value.startswith("rejected_"):
        return "rejected"
    return "pending"


class DashboardService:
    """Async dashboard aggregation queries."""

    # ═════════════════════════════════════════════════════════════════
    # GET /summary
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def summary(
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> DashboardSummaryResponse:
        """Outcome totals for requests submitted between *start* and *end*."""
        lower, upper = _bounds(start, end)

        query = select(
            LeaveRequest.leave_type,
            LeaveRequest.status,
            LeaveRequest.total_days,
            LeaveRequest.created_at,
            LeaveRequest.decided_at,
        )
        if lower is not None:
            query = query.where(LeaveRequest.created_at >= lower)
        if upper is not None:
            query = query.where(LeaveRequest.created_at < upper)
        rows = (await db.execute(query)).all()

        totals: dict[str, int] = defaultdict(int)
        durations: list[timedelta] = []
        per_type: dict[LeaveCategory, dict] = {}

        for leave_type, status, total_days, created_at, decided_at in rows:
            outcome = _outcome(status)
            totals[outcome] += 1

            bucket = per_type.setdefault(
                leave_type, {"total": 0, "approved": 0, "decided": 0, "days": 0, "durations": []},
            )
            bucket["total"] += 1
            bucket["days"] += total_days
            if outcome != "pending":
                bucket["decided"] += 1
            if outcome == "approved":
                bucket["approved"] += 1

            if outcome != "pending" and decided_at is not None:
                elapsed = as_utc(decided_at) - as_utc(created_at)
                durations.append(elapsed)
                bucket["durations"].append(elapsed)

        decided = totals["approved"] + totals["rejected"]
        return DashboardSummaryResponse(
            start_date=start,
            end_date=end,
            total_requests=len(rows),
            approved_requests=totals["approved"],
            rejected_requests=totals["rejected"],
            pending_requests=totals["pending"],
            approval_rate=_rate(totals["approved"], decided),
            rejection_rate=_rate(totals["rejected"], decided),
            average_processing_hours=_hours(durations),
            by_type=[
                LeaveTypeStats(
                    leave_type=leave_type,
                    total_requests=b["total"],
                    approved_requests=b["approved"],
                    total_days=b["days"],
                    average_processing_hours=_hours(b["durations"]),
                    approval_rate=_rate(b["approved"], b["decided"]),
                )
                for leave_type, b in sorted(per_type.items(), key=lambda kv: kv[0].value)
            ],
        )


    # ═════════════════════════════════════════════════════════════════
    # GET /validators
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _pending_for(db: AsyncSession, validator: Employee) -> int:
        """Requests currently awaiting *validator*'s stage within their scope."""
        stage = stage_for_role(validator.role)
        if stage is None:
            return 0
        query = (
            select(func.count())
            .select_from(LeaveRequest)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .where(LeaveRequest.status == status_awaiting(stage))
        )
        if stage == ValidationStage.direction:
            query = query.where(direction_scope(validator.department))
        return (await db.execute(query)).scalar_one()

    @staticmethod
    async def validator_stats(
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
        *,
        reminders: Optional[ReminderScheduler] = None,
    ) -> list[ValidatorStats]:
        """Per-validator decision counts for steps decided in the period.

        ``pending_requests`` and ``delayed_requests`` describe the current
        workload and ignore the period; delays use the reminder threshold of
        *reminders* and stay at 0 without one. Validators with neither
        decisions nor workload are left out.
        """
        lower, upper = _bounds(start, end)

        counts_q = (
            select(
                ValidationStep.validator_id,
                ValidationStep.outcome,
                func.count(ValidationStep.id),
            )
            .group_by(ValidationStep.validator_id, ValidationStep.outcome)
        )
        timing_q = select(
            ValidationStep.validator_id,
            ValidationStep.stage_entered_at,
            ValidationStep.decided_at,
        )
        if lower is not None:
            counts_q = counts_q.where(ValidationStep.decided_at >= lower)
            timing_q = timing_q.where(ValidationStep.decided_at >= lower)
        if upper is not None:
            counts_q = counts_q.where(ValidationStep.decided_at < upper)
            timing_q = timing_q.where(ValidationStep.decided_at < upper)

        counts: dict = defaultdict(lambda: {Decision.approve: 0, Decision.reject: 0})
        for validator_id, outcome, n in (await db.execute(counts_q)).all():
            counts[validator_id][outcome] = n

        durations: dict = defaultdict(list)
        for validator_id, entered, decided in (await db.execute(timing_q)).all():
            if entered is not None:
                durations[validator_id].append(as_utc(decided) - as_utc(entered))

        pending: dict = {}
        active = (
            await db.execute(
                select(Employee).where(
                    Employee.role.in_(list(VALIDATOR_ROLES)),
                    Employee.is_active.is_(True),
                )
            )
        ).scalars().all()
        for validator in active:
            pending[validator.id] = await DashboardService._pending_for(db, validator)

        delayed: dict = defaultdict(int)
        if reminders is not None:
            for item in await reminders.find_delayed(db):
                for contact in item.validators:
                    delayed[contact.id] += 1

        wanted = set(counts) | {vid for vid, n in pending.items() if n} | set(delayed)
        if not wanted:
            return []
        validators = (
            await db.execute(select(Employee).where(Employee.id.in_(list(wanted))))
        ).scalars().all()

        stats = []
        for validator in validators:
            approvals = counts[validator.id][Decision.approve]
            rejections = counts[validator.id][Decision.reject]
            total = approvals + rejections
            stats.append(
                ValidatorStats(
                    validator_id=validator.id,
                    validator_name=validator.full_name,
                    validator_role=validator.role,
                    total_decisions=total,
                    approvals=approvals,
                    rejections=rejections,
                    approval_rate=_rate(approvals, total),
                    average_decision_hours=_hours(durations[validator.id]),
                    pending_requests=pending.get(validator.id, 0),
                    delayed_requests=delayed[validator.id],
                )
            )
        stats.sort(key=lambda s: (-s.total_decisions, s.validator_name))
        return stats

    # ═════════════════════════════════════════════════════════════════
    # GET /monthly
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def monthly(db: AsyncSession, year: int) -> MonthlyTrendResponse:
        """Twelve buckets of requests submitted in *year*, by submission month."""
        lower = datetime(year, 1, 1, tzinfo=timezone.utc)
        upper = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        rows = (
            await db.execute(
                select(
                    LeaveRequest.status,
                    LeaveRequest.created_at,
                    LeaveRequest.decided_at,
                ).where(LeaveRequest.created_at >= lower, LeaveRequest.created_at < upper)
            )
        ).all()

        buckets = {
            m: {"total": 0, "approved": 0, "rejected": 0, "durations": []}
            for m in range(1, 13)
        }
        for status, created_at, decided_at in rows:
            created = as_utc(created_at)
            bucket = buckets[created.month]
            bucket["total"] += 1
            outcome = _outcome(status)
            if outcome == "pending":
                continue
            bucket[outcome] += 1
            if decided_at is not None:
                bucket["durations"].append(as_utc(decided_at) - created)

        return MonthlyTrendResponse(
            year=year,
            months=[
                MonthlyStats(
                    month=m,
                    total_requests=b["total"],
                    approved_requests=b["approved"],
                    rejected_requests=b["rejected"],
                    average_processing_hours=_hours(b["durations"]),
                )
                for m, b in buckets.items()
            ],
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /departments
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def departments(
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[DepartmentStats]:
        """Requests and approved absence days per department.

        A request belongs to the period when its leave dates touch it.
        """
        if start and end and start > end:
            raise InvalidRangeError(start, end)

        headcount = dict(
            (
                await db.execute(
                    select(Employee.department, func.count(Employee.id))
                    .where(Employee.is_active.is_(True))
                    .group_by(Employee.department)
                )
            ).all()
        )

        query = select(
            Employee.department, LeaveRequest.status, LeaveRequest.total_days,
        ).join(Employee, Employee.id == LeaveRequest.employee_id)
        if start is not None:
            query = query.where(LeaveRequest.end_date >= start)
        if end is not None:
            query = query.where(LeaveRequest.start_date <= end)

        per_dept: dict = defaultdict(
            lambda: {"total": 0, "approved": 0, "rejected": 0, "pending": 0, "days": 0}
        )
        for department, status, total_days in (await db.execute(query)).all():
            bucket = per_dept[department]
            bucket["total"] += 1
            outcome = _outcome(status)
            bucket[outcome] += 1
            if outcome == "approved":
                bucket["days"] += total_days

        stats = []
        for department, b in per_dept.items():
            employees = headcount.get(department, 0)
            stats.append(
                DepartmentStats(
                    department=department,
                    employee_count=employees,
                    total_requests=b["total"],
                    approved_requests=b["approved"],
                    rejected_requests=b["rejected"],
                    pending_requests=b["pending"],
                    absence_days=b["days"],
                    average_absence_days=round(b["days"] / employees, 2) if employees else 0.0,
                )
            )
        stats.sort(key=lambda s: (-s.absence_days, s.department or ""))
        return stats
