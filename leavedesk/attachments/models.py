"""Supporting documents (justificatifs) attached to leave requests."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.audit import utcnow
from leavedesk.common.constants import AttachmentStatus
from leavedesk.database import Base


class Attachment(Base):
    __tablename__ = "leave_attachments"
    __table_args__ = (
        sa.Index("ix_leave_attachments_request_status", "request_id", "status"),
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
    file_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(sa.String(500), nullable=False, unique=True)
    file_type: Mapped[Optional[str]] = mapped_column(sa.String(100))
    file_size: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[AttachmentStatus] = mapped_column(
        sa.Enum(AttachmentStatus, name="attachment_status", native_enum=False, length=20),
        default=AttachmentStatus.pending,
        server_default=AttachmentStatus.pending.value,
    )
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now()
    )
