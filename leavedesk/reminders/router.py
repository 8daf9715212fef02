"""Reminder router — delayed requests and manual sweeps (validators/admin)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import require_role
from leavedesk.common.constants import UserRole
from leavedesk.common.rate_limit import SWEEP_LIMIT, limiter
from leavedesk.database import get_db
from leavedesk.dependencies import get_reminder_scheduler
from leavedesk.employees.models import Employee
from leavedesk.reminders.schemas import DelayedCount, DelayedRequest, ScanResult
from leavedesk.reminders.service import ReminderScheduler

router = APIRouter(prefix="", tags=["reminders"])

_staff = require_role(UserRole.direction, UserRole.dgpec, UserRole.dg, UserRole.admin)


@router.get("/delayed", response_model=list[DelayedRequest])
async def list_delayed(
    threshold_days: Optional[int] = Query(None, ge=0),
    employee: Employee = Depends(_staff),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
    db: AsyncSession = Depends(get_db),
):
    return await scheduler.find_delayed(db, threshold_days)


@router.get("/delayed/count", response_model=DelayedCount)
async def count_delayed(
    threshold_days: Optional[int] = Query(None, ge=0),
    employee: Employee = Depends(_staff),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
    db: AsyncSession = Depends(get_db),
):
    delayed = await scheduler.find_delayed(db, threshold_days)
    threshold = scheduler.threshold_days if threshold_days is None else threshold_days
    return DelayedCount(threshold_days=threshold, count=len(delayed))


@router.post("/scan", response_model=ScanResult)
@limiter.limit(SWEEP_LIMIT)
async def scan(
    request: Request,
    threshold_days: Optional[int] = Query(None, ge=0),
    employee: Employee = Depends(_staff),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
):
    """Run a sweep now; returns only the requests reminded by this call."""
    reminded = await scheduler.scan(threshold_days)
    threshold = scheduler.threshold_days if threshold_days is None else threshold_days
    return ScanResult(threshold_days=threshold, reminded=reminded)
