"""Holiday router — public calendar reads for everyone, writes for DGPEC/admin."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import UserRole
from leavedesk.database import get_db
from leavedesk.employees.models import Employee
from leavedesk.holidays.schemas import HolidayCreate, HolidayOut, HolidayUpdate
from leavedesk.holidays.service import HolidayService

router = APIRouter(prefix="", tags=["holidays"])

_calendar_admin = require_role(UserRole.dgpec, UserRole.admin)


@router.get("", response_model=list[HolidayOut])
async def list_holidays(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.list_in_range(db, start_date, end_date)


@router.get("/{holiday_id}", response_model=HolidayOut)
async def get_holiday(
    holiday_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.get(db, holiday_id)


@router.post("", response_model=HolidayOut, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    employee: Employee = Depends(_calendar_admin),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.add(
        db, body.date, body.description, employee.id, recurring=body.recurring,
    )


@router.put("/{holiday_id}", response_model=HolidayOut)
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayUpdate,
    employee: Employee = Depends(_calendar_admin),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.update(
        db, holiday_id, body.date, body.description, employee.id,
        recurring=body.recurring,
    )


@router.delete("/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    employee: Employee = Depends(_calendar_admin),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete(db, holiday_id)
    return Response(status_code=204)
