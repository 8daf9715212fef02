"""Public holiday calendar: one row per non-working date.

A recurring row falls on the same month and day every year from its own
date onward.
"""

from __future__ import annotations

import uuid
from datetime import date

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.audit import AuditMixin
from leavedesk.database import Base


class Holiday(Base, AuditMixin):
    __tablename__ = "public_holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    date: Mapped[date] = mapped_column(sa.Date, nullable=False, unique=True)
    description: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    recurring: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        suffix = " yearly" if self.recurring else ""
        return f"<Holiday {self.date.isoformat()}{suffix} {self.description!r}>"
