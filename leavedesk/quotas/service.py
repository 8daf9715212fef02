"""Quota ledger service — balances, manual adjustments, approval debits.

Business rules:
  - ``quota_remaining`` is always derived (total − used), never stored
  - every manual change writes exactly one QuotaAdjustment in the same flush
  - a request can be debited at most once (QuotaDebit.request_id is unique)
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import as_utc, utcnow
from leavedesk.common.constants import LeaveCategory
from leavedesk.common.exceptions import (
    DuplicateDebitError,
    MissingReasonError,
    NotFoundException,
    ValidationException,
)
from leavedesk.employees.models import Employee
from leavedesk.quotas.models import LeaveQuota, QuotaAdjustment, QuotaDebit
from leavedesk.quotas.schemas import QuotaAdjustmentOut, QuotaInfo

logger = logging.getLogger(__name__)


class QuotaService:

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        *,
        for_update: bool = False,
    ) -> Optional[LeaveQuota]:
        query = select(LeaveQuota).where(
            LeaveQuota.employee_id == employee_id,
            LeaveQuota.category == category,
        )
        if for_update:
            query = query.with_for_update()
        return (await db.execute(query)).scalars().first()

    @staticmethod
    async def _get_or_create(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        actor_id: Optional[uuid.UUID],
    ) -> LeaveQuota:
        quota = await QuotaService._find(db, employee_id, category, for_update=True)
        if quota is not None:
            return quota

        if await db.get(Employee, employee_id) is None:
            raise NotFoundException("Employee", employee_id)
        now = utcnow()
        quota = LeaveQuota(
            employee_id=employee_id,
            category=category,
            total_days=0,
            used_days=0,
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        db.add(quota)
        await db.flush()
        return quota

    @staticmethod
    def _adjustment_out(adj: QuotaAdjustment, adjuster: Optional[Employee] = None) -> QuotaAdjustmentOut:
        out = QuotaAdjustmentOut.model_validate(adj)
        out.created_at = as_utc(out.created_at)
        if adjuster is not None:
            out.adjuster_name = adjuster.full_name
        return out

    @staticmethod
    async def _last_adjustment(
        db: AsyncSession, quota_id: uuid.UUID,
    ) -> Optional[QuotaAdjustmentOut]:
        row = (
            await db.execute(
                select(QuotaAdjustment, Employee)
                .outerjoin(Employee, Employee.id == QuotaAdjustment.adjusted_by)
                .where(QuotaAdjustment.quota_id == quota_id)
                .order_by(QuotaAdjustment.created_at.desc())
                .limit(1)
            )
        ).first()
        if row is None:
            return None
        return QuotaService._adjustment_out(row[0], row[1])

    @staticmethod
    async def _info(db: AsyncSession, quota: LeaveQuota) -> QuotaInfo:
        employee = await db.get(Employee, quota.employee_id)
        return QuotaInfo(
            id=quota.id,
            employee_id=quota.employee_id,
            employee_name=employee.full_name if employee else "",
            department=employee.department if employee else None,
            category=quota.category,
            total_days=quota.total_days,
            used_days=quota.used_days,
            quota_remaining=quota.remaining_days,
            updated_at=as_utc(quota.updated_at),
            last_adjustment=await QuotaService._last_adjustment(db, quota.id),
        )

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
    ) -> QuotaInfo:
        quota = await QuotaService._find(db, employee_id, category)
        if quota is None:
            raise NotFoundException("LeaveQuota", f"{employee_id}/{category.value}")
        return await QuotaService._info(db, quota)

    @staticmethod
    async def remaining(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        *,
        for_update: bool = False,
    ) -> int:
        """Days left, 0 when the employee has no quota row for *category*.

        With *for_update* the quota row stays locked until the transaction
        ends, so a check followed by a debit cannot interleave with another.
        """
        quota = await QuotaService._find(db, employee_id, category, for_update=for_update)
        return quota.remaining_days if quota else 0

    @staticmethod
    async def list_for_employee(db: AsyncSession, employee_id: uuid.UUID) -> list[QuotaInfo]:
        rows = (
            await db.execute(
                select(LeaveQuota)
                .where(LeaveQuota.employee_id == employee_id)
                .order_by(LeaveQuota.category)
            )
        ).scalars().all()
        return [await QuotaService._info(db, q) for q in rows]

    @staticmethod
    async def list(
        db: AsyncSession,
        *,
        department: Optional[str] = None,
        category: Optional[LeaveCategory] = None,
    ) -> list[QuotaInfo]:
        """All quotas, most recently updated first."""
        query = (
            select(LeaveQuota)
            .join(Employee, Employee.id == LeaveQuota.employee_id)
            .order_by(LeaveQuota.updated_at.desc(), Employee.full_name)
        )
        if department:
            query = query.where(Employee.department == department)
        if category is not None:
            query = query.where(LeaveQuota.category == category)
        rows = (await db.execute(query)).scalars().all()
        return [await QuotaService._info(db, q) for q in rows]

    @staticmethod
    async def history(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: Optional[LeaveCategory] = None,
    ) -> list[QuotaAdjustmentOut]:
        """Adjustments for an employee, newest first."""
        query = (
            select(QuotaAdjustment, Employee)
            .outerjoin(Employee, Employee.id == QuotaAdjustment.adjusted_by)
            .where(QuotaAdjustment.employee_id == employee_id)
            .order_by(QuotaAdjustment.created_at.desc())
        )
        if category is not None:
            query = query.where(QuotaAdjustment.category == category)
        rows = (await db.execute(query)).all()
        return [QuotaService._adjustment_out(adj, who) for adj, who in rows]

    # ── Writes ──────────────────────────────────────────────────────

    @staticmethod
    async def adjust(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        *,
        new_total: Optional[int] = None,
        new_used: Optional[int] = None,
        reason: str,
        adjuster_id: Optional[uuid.UUID],
    ) -> QuotaInfo:
        """Set total and/or used days; omitted values are kept."""
        reason = (reason or "").strip()
        if not reason:
            raise MissingReasonError()

        errors: dict[str, list[str]] = {}
        if new_total is not None and new_total < 0:
            errors["new_total"] = ["Must be zero or greater."]
        if new_used is not None and new_used < 0:
            errors["new_used"] = ["Must be zero or greater."]
        if errors:
            raise ValidationException(errors)

        quota = await QuotaService._get_or_create(db, employee_id, category, adjuster_id)
        previous_total, previous_used = quota.total_days, quota.used_days
        now = utcnow()

        quota.total_days = previous_total if new_total is None else new_total
        quota.used_days = previous_used if new_used is None else new_used
        quota.updated_by = adjuster_id
        quota.updated_at = now

        db.add(
            QuotaAdjustment(
                quota_id=quota.id,
                employee_id=employee_id,
                category=category,
                previous_total=previous_total,
                new_total=quota.total_days,
                previous_used=previous_used,
                new_used=quota.used_days,
                reason=reason,
                adjusted_by=adjuster_id,
                created_at=now,
            )
        )
        await db.flush()

        logger.info(
            "Quota %s/%s adjusted by %s: total %d→%d, used %d→%d",
            employee_id, category.value, adjuster_id,
            previous_total, quota.total_days, previous_used, quota.used_days,
        )
        return await QuotaService._info(db, quota)

    @staticmethod
    async def debit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        days: int,
        *,
        reason: str,
        request_id: uuid.UUID,
    ) -> QuotaInfo:
        """Consume *days* for a fully approved request, once per request."""
        existing = await db.execute(
            select(QuotaDebit.id).where(QuotaDebit.request_id == request_id)
        )
        if existing.first() is not None:
            raise DuplicateDebitError(request_id)

        quota = await QuotaService._get_or_create(db, employee_id, category, None)
        quota.used_days += days
        quota.updated_at = utcnow()

        db.add(
            QuotaDebit(
                quota_id=quota.id,
                request_id=request_id,
                days=days,
                reason=reason,
                created_at=quota.updated_at,
            )
        )
        try:
            await db.flush()
        except IntegrityError as exc:
            raise DuplicateDebitError(request_id) from exc

        logger.info(
            "Quota %s/%s debited %d day(s) for request %s (remaining %d)",
            employee_id, category.value, days, request_id, quota.remaining_days,
        )
        return await QuotaService._info(db, quota)
