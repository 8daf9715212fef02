"""Leave quota ledger: balances, the adjustment history and per-request debits."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.audit import AuditMixin, utcnow
from leavedesk.common.constants import LeaveCategory
from leavedesk.database import Base

_category = sa.Enum(LeaveCategory, name="leave_category", native_enum=False, length=32)


class LeaveQuota(Base, AuditMixin):
    __tablename__ = "leave_quotas"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "category", name="uq_leave_quota_employee_category"),
        sa.CheckConstraint("total_days >= 0", name="total_non_negative"),
        sa.CheckConstraint("used_days >= 0", name="used_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    category: Mapped[LeaveCategory] = mapped_column(_category, nullable=False)
    total_days: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    used_days: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )

    @property
    def remaining_days(self) -> int:
        return self.total_days - self.used_days


class QuotaAdjustment(Base):
    """Immutable record of a manual change to a quota."""

    __tablename__ = "leave_quota_adjustments"
    __table_args__ = (
        sa.Index("ix_leave_quota_adjustments_quota", "quota_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    quota_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_quotas.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    category: Mapped[LeaveCategory] = mapped_column(_category, nullable=False)
    previous_total: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    new_total: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    previous_used: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    new_used: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    adjusted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )


class QuotaDebit(Base):
    """Days consumed by a fully approved request; one row per request."""

    __tablename__ = "leave_quota_debits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    quota_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_quotas.id", ondelete="CASCADE"),
        nullable=False,
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )
