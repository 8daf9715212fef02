"""Employee directory: the people who request and validate leave."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.audit import utcnow
from leavedesk.common.constants import UserRole, VALIDATOR_ROLES
from leavedesk.database import Base


class Employee(Base):
    """An authenticated user; ``role`` decides which approval stage they own."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[Optional[str]] = mapped_column(sa.String(20), unique=True)
    full_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(150), index=True)
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", native_enum=False, length=20),
        nullable=False,
        default=UserRole.employee,
        server_default=UserRole.employee.value,
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=sa.func.now(),
    )

    @property
    def is_validator(self) -> bool:
        return self.role in VALIDATOR_ROLES

    def __repr__(self) -> str:
        return f"<Employee {self.full_name!r} ({self.role.value})>"
