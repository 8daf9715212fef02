"""Leave ORM models: LeaveRequest, ValidationStep, ActionLog."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.audit import utcnow
from leavedesk.common.constants import (
    ActionKind,
    Decision,
    LeaveCategory,
    LeaveStatus,
    RequestPriority,
    ValidationStage,
)
from leavedesk.database import Base


def _enum(enum_cls, name: str) -> sa.Enum:
    return sa.Enum(enum_cls, name=name, native_enum=False, length=32)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="date_order"),
        sa.Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        sa.Index("ix_leave_requests_status_stage", "status", "stage_entered_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type: Mapped[LeaveCategory] = mapped_column(
        _enum(LeaveCategory, "leave_category"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    priority: Mapped[RequestPriority] = mapped_column(
        _enum(RequestPriority, "request_priority"),
        default=RequestPriority.normal,
        server_default=RequestPriority.normal.value,
    )
    status: Mapped[LeaveStatus] = mapped_column(
        _enum(LeaveStatus, "leave_status"),
        default=LeaveStatus.pending,
        server_default=LeaveStatus.pending.value,
    )
    stage_entered_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, nullable=False
    )
    reminder_count: Mapped[int] = mapped_column(
        sa.Integer, default=0, server_default=sa.text("0")
    )
    last_reminder_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    version: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=sa.text("1")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )

    __mapper_args__ = {"version_id_col": version}


class ValidationStep(Base):
    """One decided stage of a request (at most one row per stage)."""

    __tablename__ = "validation_steps"
    __table_args__ = (
        sa.UniqueConstraint("request_id", "stage", name="uq_validation_step_stage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    stage: Mapped[ValidationStage] = mapped_column(
        _enum(ValidationStage, "validation_stage"), nullable=False
    )
    validator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    outcome: Mapped[Decision] = mapped_column(_enum(Decision, "decision"), nullable=False)
    comment: Mapped[str] = mapped_column(sa.Text, nullable=False)
    stage_entered_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    decided_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, nullable=False
    )


class ActionLog(Base):
    """Append-only timeline of everything that happened to a request."""

    __tablename__ = "leave_request_actions"
    __table_args__ = (
        sa.Index("ix_leave_request_actions_request", "request_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    kind: Mapped[ActionKind] = mapped_column(_enum(ActionKind, "action_kind"), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    details: Mapped[Optional[dict]] = mapped_column(JSONB)
    # employee ids (as strings) who have read this entry; only ever grows
    read_by: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )
