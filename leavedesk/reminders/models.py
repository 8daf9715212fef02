"""Reminder claims: one row per reminder sent for a request at a stage."""

from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.audit import utcnow
from leavedesk.common.constants import ValidationStage
from leavedesk.database import Base


class ReminderLog(Base):
    """Claimed before any e-mail leaves; the unique key makes sweeps idempotent.

    ``sequence`` is the request's ``reminder_count`` after this send, so two
    sweeps racing for the same reminder collide on the same key.
    """

    __tablename__ = "reminder_logs"
    __table_args__ = (
        sa.UniqueConstraint(
            "request_id", "stage_entered_at", "sequence",
            name="uq_reminder_logs_claim",
        ),
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
        sa.Enum(ValidationStage, name="validation_stage", native_enum=False, length=32),
        nullable=False,
    )
    stage_entered_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    sequence: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    days_delayed: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    recipients: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    sent_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )
