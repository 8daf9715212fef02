"""Enums and constants for LeaveDesk — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    direction = "direction"
    dgpec = "dgpec"
    dg = "dg"
    admin = "admin"


VALIDATOR_ROLES: frozenset[UserRole] = frozenset(
    {UserRole.direction, UserRole.dgpec, UserRole.dg}
)


# ── Leave ───────────────────────────────────────────────────────────

class LeaveCategory(str, enum.Enum):
    annual = "annual"
    sick = "sick"
    bereavement = "bereavement"
    maternity = "maternity"
    special = "special"


class RequestPriority(str, enum.Enum):
    urgent = "urgent"
    normal = "normal"
    low = "low"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    validated_by_direction = "validated_by_direction"
    rejected_by_direction = "rejected_by_direction"
    validated_by_dgpec = "validated_by_dgpec"
    rejected_by_dgpec = "rejected_by_dgpec"
    validated_by_dg = "validated_by_dg"
    rejected_by_dg = "rejected_by_dg"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[LeaveStatus] = frozenset(
    {
        LeaveStatus.rejected_by_direction,
        LeaveStatus.rejected_by_dgpec,
        LeaveStatus.validated_by_dg,
        LeaveStatus.rejected_by_dg,
    }
)


class ValidationStage(str, enum.Enum):
    direction = "direction"
    dgpec = "dgpec"
    dg = "dg"


class Decision(str, enum.Enum):
    approve = "approve"
    reject = "reject"


class ActionKind(str, enum.Enum):
    submission = "submission"
    validation = "validation"
    rejection = "rejection"
    modification = "modification"
    comment = "comment"


# ── Attachments ─────────────────────────────────────────────────────

class AttachmentStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    reminder = "reminder"
    alert = "alert"


# ── Quota policy ────────────────────────────────────────────────────

class OverdraftPolicy(str, enum.Enum):
    warn = "warn"
    block = "block"


# ── Misc ────────────────────────────────────────────────────────────

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})  # Saturday, Sunday
