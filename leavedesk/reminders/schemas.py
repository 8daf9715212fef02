"""Reminder response schemas."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from leavedesk.common.constants import LeaveCategory, LeaveStatus, ValidationStage
from leavedesk.employees.schemas import ValidatorContact


class DelayedRequest(BaseModel):
    id: uuid.UUID
    employee_name: str
    employee_email: str
    department: Optional[str] = None
    leave_type: LeaveCategory
    start_date: date
    status: LeaveStatus
    stage: ValidationStage
    stage_entered_at: datetime
    days_delayed: int
    reminder_count: int
    last_reminder_at: Optional[datetime] = None
    validators: list[ValidatorContact] = Field(default_factory=list)


class DelayedCount(BaseModel):
    threshold_days: int
    count: int


class ScanResult(BaseModel):
    threshold_days: int
    reminded: list[DelayedRequest]
