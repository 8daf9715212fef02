"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""


import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import (
    ActionKind,
    Decision,
    LeaveCategory,
    LeaveStatus,
    RequestPriority,
    ValidationStage,
)
from leavedesk.common.pagination import PaginationMeta
from leavedesk.employees.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Working days
# ═════════════════════════════════════════════════════════════════════


class HolidayOnDate(BaseModel):
    date: date
    description: str


class WorkingDaysCalculation(BaseModel):
    start_date: date
    end_date: date
    total_days: int
    working_days: int
    weekend_days: int
    holiday_days: int
    holidays: list[HolidayOnDate] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Requests (write)
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveCategory
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=2000)
    priority: RequestPriority = RequestPriority.normal


class TransitionRequest(BaseModel):
    """A stage decision. Blank comments are rejected by the service."""

    decision: Decision
    comment: str = Field("", max_length=2000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    # version the client last saw; a mismatch is a 409
    expected_version: Optional[int] = None


class PriorityUpdate(BaseModel):
    priority: RequestPriority


class CommentCreate(BaseModel):
    comment: str = Field(..., max_length=2000)


# ═════════════════════════════════════════════════════════════════════
# Responses (read)
# ═════════════════════════════════════════════════════════════════════


class ValidationStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    stage: ValidationStage
    validator_id: uuid.UUID
    validator_name: Optional[str] = None
    outcome: Decision
    comment: str
    decided_at: datetime


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee: Optional[EmployeeBrief] = None
    leave_type: LeaveCategory
    start_date: date
    end_date: date
    total_days: int
    reason: Optional[str] = None
    priority: RequestPriority
    status: LeaveStatus
    stage: Optional[ValidationStage] = None
    stage_entered_at: datetime
    reminder_count: int = 0
    last_reminder_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime
    steps: list[ValidationStepOut] = Field(default_factory=list)

    # Populated only where relevant (submission, decisions)
    calculation: Optional[WorkingDaysCalculation] = None
    warnings: list[str] = Field(default_factory=list)


class LeaveRequestListResponse(BaseModel):
    data: list[LeaveRequestOut]
    meta: PaginationMeta


class ActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    request_id: uuid.UUID
    actor_id: uuid.UUID
    actor_name: Optional[str] = None
    kind: ActionKind
    comment: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    read_by: list[str] = Field(default_factory=list)
    created_at: datetime


class ValidationHistoryItem(BaseModel):
    """A decided stage together with the request it belongs to."""

    step_id: uuid.UUID
    request_id: uuid.UUID
    employee_name: str
    department: Optional[str] = None
    leave_type: LeaveCategory
    start_date: date
    end_date: date
    total_days: int
    request_status: LeaveStatus
    stage: ValidationStage
    outcome: Decision
    comment: str
    validator_name: Optional[str] = None
    decided_at: datetime
