"""Dashboard router — read-only decision statistics (validators and admin)."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import require_role
from leavedesk.common.audit import utcnow
from leavedesk.common.constants import UserRole
from leavedesk.dashboard.schemas import (
    DashboardSummaryResponse,
    DepartmentStats,
    MonthlyTrendResponse,
    ValidatorStats,
)
from leavedesk.dashboard.service import DashboardService
from leavedesk.database import get_db
from leavedesk.dependencies import get_reminder_scheduler
from leavedesk.employees.models import Employee
from leavedesk.reminders.service import ReminderScheduler

router = APIRouter()

_staff = require_role(UserRole.direction, UserRole.dgpec, UserRole.dg, UserRole.admin)


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary", response_model=DashboardSummaryResponse)
async def dashboard_summary(
    start_date: Optional[date] = Query(None, description="Submitted on or after"),
    end_date: Optional[date] = Query(None, description="Submitted on or before"),
    employee: Employee = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    """Approved / rejected / pending totals, rates and processing time."""
    return await DashboardService.summary(db, start_date, end_date)


# ── GET /validators ─────────────────────────────────────────────────

@router.get("/validators", response_model=list[ValidatorStats])
async def validator_stats(
    start_date: Optional[date] = Query(None, description="Decided on or after"),
    end_date: Optional[date] = Query(None, description="Decided on or before"),
    employee: Employee = Depends(_staff),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
    db: AsyncSession = Depends(get_db),
):
    """Decisions per validator with approval rate, decision time and workload."""
    return await DashboardService.validator_stats(
        db, start_date, end_date, reminders=scheduler,
    )


# ── GET /monthly ────────────────────────────────────────────────────

@router.get("/monthly", response_model=MonthlyTrendResponse)
async def monthly_trend(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Defaults to this year"),
    employee: Employee = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    """Submitted, approved and rejected requests per month of *year*."""
    return await DashboardService.monthly(db, year or utcnow().year)


# ── GET /departments ────────────────────────────────────────────────

@router.get("/departments", response_model=list[DepartmentStats])
async def department_breakdown(
    start_date: Optional[date] = Query(None, description="Leave ending on or after"),
    end_date: Optional[date] = Query(None, description="Leave starting on or before"),
    employee: Employee = Depends(_staff),
    db: AsyncSession = Depends(get_db),
):
    """Requests and approved absence days per department."""
    return await DashboardService.departments(db, start_date, end_date)
