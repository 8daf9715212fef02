"""Quota router — own balances for everyone, ledger management for DGPEC/admin."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import VALIDATOR_ROLES, LeaveCategory, UserRole
from leavedesk.common.exceptions import ForbiddenException
from leavedesk.database import get_db
from leavedesk.employees.models import Employee
from leavedesk.quotas.schemas import QuotaAdjustmentOut, QuotaAdjustRequest, QuotaInfo
from leavedesk.quotas.service import QuotaService

router = APIRouter(prefix="", tags=["quotas"])

_ledger_admin = require_role(UserRole.dgpec, UserRole.admin)


def _ensure_can_view(viewer: Employee, employee_id: uuid.UUID) -> None:
    if viewer.id != employee_id and viewer.role not in VALIDATOR_ROLES | {UserRole.admin}:
        raise ForbiddenException("You can only view your own leave quotas.")


@router.get("", response_model=list[QuotaInfo])
async def list_quotas(
    department: Optional[str] = Query(None),
    category: Optional[LeaveCategory] = Query(None),
    employee: Employee = Depends(_ledger_admin),
    db: AsyncSession = Depends(get_db),
):
    return await QuotaService.list(db, department=department, category=category)


# /me and /adjust are literal paths: keep them above the /{employee_id} routes.

@router.get("/me", response_model=list[QuotaInfo])
async def my_quotas(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await QuotaService.list_for_employee(db, employee.id)


@router.post("/adjust", response_model=QuotaInfo)
async def adjust_quota(
    body: QuotaAdjustRequest,
    employee: Employee = Depends(_ledger_admin),
    db: AsyncSession = Depends(get_db),
):
    """Manually set total and/or used days. A reason is mandatory."""
    return await QuotaService.adjust(
        db,
        body.employee_id,
        body.category,
        new_total=body.new_total,
        new_used=body.new_used,
        reason=body.reason,
        adjuster_id=employee.id,
    )


@router.get("/{employee_id}/history", response_model=list[QuotaAdjustmentOut])
async def quota_history(
    employee_id: uuid.UUID,
    category: Optional[LeaveCategory] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_can_view(employee, employee_id)
    return await QuotaService.history(db, employee_id, category)


@router.get("/{employee_id}/{category}", response_model=QuotaInfo)
async def get_quota(
    employee_id: uuid.UUID,
    category: LeaveCategory,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_can_view(employee, employee_id)
    return await QuotaService.get(db, employee_id, category)
