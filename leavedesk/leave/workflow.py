"""Three-stage approval path: Direction → DGPEC → DG.

The table below is the only place that knows which status follows which.
Everything else asks ``stage_for`` / ``next_status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from leavedesk.common.constants import (
    Decision,
    LeaveStatus,
    OverdraftPolicy,
    UserRole,
    ValidationStage,
)

# status → (stage that must decide it, status on approve, status on reject)
TRANSITIONS: dict[LeaveStatus, tuple[ValidationStage, LeaveStatus, LeaveStatus]] = {
    LeaveStatus.pending: (
        ValidationStage.direction,
        LeaveStatus.validated_by_direction,
        LeaveStatus.rejected_by_direction,
    ),
    LeaveStatus.validated_by_direction: (
        ValidationStage.dgpec,
        LeaveStatus.validated_by_dgpec,
        LeaveStatus.rejected_by_dgpec,
    ),
    LeaveStatus.validated_by_dgpec: (
        ValidationStage.dg,
        LeaveStatus.validated_by_dg,
        LeaveStatus.rejected_by_dg,
    ),
}

STAGE_ROLES: dict[ValidationStage, UserRole] = {
    ValidationStage.direction: UserRole.direction,
    ValidationStage.dgpec: UserRole.dgpec,
    ValidationStage.dg: UserRole.dg,
}

STAGE_LABELS: dict[ValidationStage, str] = {
    ValidationStage.direction: "Direction",
    ValidationStage.dgpec: "DGPEC",
    ValidationStage.dg: "DG",
}

# Stages at which the validator may correct the requested dates
DATE_OVERRIDE_STAGES = frozenset({ValidationStage.dgpec, ValidationStage.dg})


def stage_for(status: LeaveStatus) -> Optional[ValidationStage]:
    """Stage currently holding a request, ``None`` once it is terminal."""
    entry = TRANSITIONS.get(status)
    return entry[0] if entry else None


def stage_for_role(role: UserRole) -> Optional[ValidationStage]:
    for stage, owner in STAGE_ROLES.items():
        if owner == role:
            return stage
    return None


def status_awaiting(stage: ValidationStage) -> LeaveStatus:
    for status, (owner, _, _) in TRANSITIONS.items():
        if owner == stage:
            return status
    raise KeyError(stage)


def next_status(status: LeaveStatus, decision: Decision) -> LeaveStatus:
    _, on_approve, on_reject = TRANSITIONS[status]
    return on_approve if decision == Decision.approve else on_reject


def is_final_approval(status: LeaveStatus, decision: Decision) -> bool:
    return decision == Decision.approve and stage_for(status) == ValidationStage.dg


@dataclass(frozen=True)
class ApprovalPolicy:
    """Knobs applied at final approval."""

    overdraft: OverdraftPolicy = OverdraftPolicy.warn
    require_attachment_review: bool = False

    @classmethod
    def from_settings(cls, settings) -> "ApprovalPolicy":
        return cls(
            overdraft=OverdraftPolicy(settings.QUOTA_OVERDRAFT_POLICY),
            require_attachment_review=settings.REQUIRE_ATTACHMENT_REVIEW,
        )
