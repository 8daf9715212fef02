"""Quota Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import LeaveCategory


class QuotaAdjustRequest(BaseModel):
    employee_id: uuid.UUID
    category: LeaveCategory
    new_total: Optional[int] = Field(None, ge=0)
    new_used: Optional[int] = Field(None, ge=0)
    reason: str = Field("", max_length=1000)


class QuotaAdjustmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    category: LeaveCategory
    previous_total: int
    new_total: int
    previous_used: int
    new_used: int
    reason: str
    adjusted_by: Optional[uuid.UUID] = None
    adjuster_name: Optional[str] = None
    created_at: datetime


class QuotaInfo(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str
    department: Optional[str] = None
    category: LeaveCategory
    total_days: int
    used_days: int
    quota_remaining: int
    updated_at: datetime
    last_adjustment: Optional[QuotaAdjustmentOut] = None
