"""Directory lookups shared by the workflow, reminders and notifications."""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from leavedesk.common.constants import UserRole, ValidationStage
from leavedesk.employees.models import Employee
from leavedesk.leave.workflow import STAGE_ROLES


async def validators_for_stage(
    db: AsyncSession,
    stage: ValidationStage,
    department: Optional[str] = None,
) -> Sequence[Employee]:
    """Active employees owning *stage*.

    Direction validators are scoped to the requester's department when any
    exist for it; otherwise every holder of the stage role is returned.
    """
    query = select(Employee).where(
        Employee.role == STAGE_ROLES[stage],
        Employee.is_active.is_(True),
    ).order_by(Employee.full_name)

    if stage == ValidationStage.direction and department:
        scoped = (
            await db.execute(query.where(Employee.department == department))
        ).scalars().all()
        if scoped:
            return scoped

    return (await db.execute(query)).scalars().all()


def direction_scope(department: Optional[str]):
    """WHERE clause on ``Employee`` for requests a Direction validator of
    *department* handles.

    Mirrors ``validators_for_stage``: a department with its own active
    Direction validator is theirs alone; any other request falls back to
    every Direction validator.
    """
    validator = aliased(Employee)
    covered = select(validator.department).where(
        validator.role == UserRole.direction,
        validator.is_active.is_(True),
        validator.department.is_not(None),
    )
    clauses = [Employee.department.is_(None), Employee.department.not_in(covered)]
    if department:
        clauses.append(Employee.department == department)
    return or_(*clauses)
