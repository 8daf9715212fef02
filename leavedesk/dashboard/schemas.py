"""Dashboard Pydantic v2 schemas — decision statistics."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from leavedesk.common.constants import LeaveCategory, UserRole


# ═════════════════════════════════════════════════════════════════════
# GET /summary
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeStats(BaseModel):
    """Requests of one leave category within the period."""

    leave_type: LeaveCategory
    total_requests: int = 0
    approved_requests: int = 0
    total_days: int = Field(0, description="Working days requested")
    average_processing_hours: float = 0.0
    approval_rate: float = 0.0


class DashboardSummaryResponse(BaseModel):
    """Outcome totals for requests submitted in the period."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_requests: int = 0
    approved_requests: int = Field(0, description="Fully validated by the DG")
    rejected_requests: int = Field(0, description="Rejected at any stage")
    pending_requests: int = Field(0, description="Still awaiting a stage")
    approval_rate: float = Field(0.0, description="Percentage of decided requests")
    rejection_rate: float = Field(0.0, description="Percentage of decided requests")
    average_processing_hours: float = Field(
        0.0, description="Submission to final decision, decided requests only"
    )
    by_type: list[LeaveTypeStats] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# GET /validators
# ═════════════════════════════════════════════════════════════════════


class ValidatorStats(BaseModel):
    validator_id: uuid.UUID
    validator_name: str
    validator_role: UserRole
    total_decisions: int = 0
    approvals: int = 0
    rejections: int = 0
    approval_rate: float = 0.0
    average_decision_hours: float = Field(
        0.0, description="Stage entry to decision"
    )
    pending_requests: int = Field(0, description="Requests awaiting this validator now")
    delayed_requests: int = Field(
        0, description="Pending requests past the reminder threshold"
    )


# ═════════════════════════════════════════════════════════════════════
# GET /monthly
# ═════════════════════════════════════════════════════════════════════


class MonthlyStats(BaseModel):
    """Requests submitted during one calendar month."""

    month: int = Field(..., ge=1, le=12)
    total_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    average_processing_hours: float = 0.0


class MonthlyTrendResponse(BaseModel):
    year: int
    months: list[MonthlyStats]


# ═════════════════════════════════════════════════════════════════════
# GET /departments
# ═════════════════════════════════════════════════════════════════════


class DepartmentStats(BaseModel):
    department: Optional[str] = Field(None, description="None for unassigned employees")
    employee_count: int = Field(0, description="Active employees")
    total_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    pending_requests: int = 0
    absence_days: int = Field(0, description="Working days of fully approved leave")
    average_absence_days: float = Field(0.0, description="absence_days per active employee")
