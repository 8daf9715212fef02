"""Leave router — working days, submission, stage decisions, timeline.

All endpoints require authentication. Stage ownership is enforced by the
service (a validator may only decide the stage mapped to their role).
"""


import uuid
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import (
    LeaveCategory,
    LeaveStatus,
    RequestPriority,
    UserRole,
    ValidationStage,
)
from leavedesk.common.pagination import PaginationParams
from leavedesk.database import get_db
from leavedesk.dependencies import get_approval_policy, get_email_dispatcher
from leavedesk.employees.models import Employee
from leavedesk.leave.schemas import (
    ActionOut,
    CommentCreate,
    LeaveRequestCreate,
    LeaveRequestListResponse,
    LeaveRequestOut,
    PriorityUpdate,
    TransitionRequest,
    ValidationHistoryItem,
    WorkingDaysCalculation,
)
from leavedesk.leave.service import LeaveService, decision_emails
from leavedesk.leave.workflow import ApprovalPolicy
from leavedesk.notifications.email import EmailDispatcher

router = APIRouter(prefix="", tags=["leave"])

_validators = require_role(UserRole.direction, UserRole.dgpec, UserRole.dg, UserRole.admin)


# ── GET /working-days ───────────────────────────────────────────────

@router.get("/working-days", response_model=WorkingDaysCalculation)
async def working_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Breakdown of a date range into working, weekend and holiday days."""
    return await LeaveService.calculate_working_days(db, start_date, end_date)


# ── Requests ────────────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def submit_request(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.submit_request(db, employee, body)


@router.get("/requests", response_model=LeaveRequestListResponse)
async def list_requests(
    scope: Literal["my", "queue", "all"] = Query("my"),
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveCategory] = Query(None),
    department: Optional[str] = Query(None),
    priority: Optional[RequestPriority] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List leave requests.

    ``scope=queue`` returns what currently awaits the caller's stage.
    """
    return await LeaveService.list_requests(
        db,
        employee,
        pagination,
        scope=scope,
        status=status,
        leave_type=leave_type,
        department=department,
        priority=priority,
        employee_id=employee_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
    )


# /validation-history is literal: keep it above /requests/{request_id}.

@router.get("/validation-history", response_model=list[ValidationHistoryItem])
async def validation_history(
    stage: Optional[ValidationStage] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    employee: Employee = Depends(_validators),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.validation_history(db, stage=stage, limit=limit)


@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, employee)


# ── POST /requests/{id}/transition ──────────────────────────────────

@router.post("/requests/{request_id}/transition", response_model=LeaveRequestOut)
async def transition_request(
    request_id: uuid.UUID,
    body: TransitionRequest,
    background_tasks: BackgroundTasks,
    employee: Employee = Depends(_validators),
    policy: ApprovalPolicy = Depends(get_approval_policy),
    mailer: EmailDispatcher = Depends(get_email_dispatcher),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject the stage the request is waiting on.

    The requester is e-mailed once the decision has been committed.
    """
    out = await LeaveService.transition(
        db,
        request_id,
        employee,
        body.decision,
        body.comment,
        start_date=body.start_date,
        end_date=body.end_date,
        expected_version=body.expected_version,
        policy=policy,
    )
    background_tasks.add_task(mailer.send_quietly, decision_emails(out, body.comment.strip()))
    return out


@router.put("/requests/{request_id}/priority", response_model=LeaveRequestOut)
async def update_priority(
    request_id: uuid.UUID,
    body: PriorityUpdate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_priority(db, request_id, body.priority, employee)


# ── Timeline ────────────────────────────────────────────────────────

@router.post("/requests/{request_id}/comments", response_model=ActionOut, status_code=201)
async def add_comment(
    request_id: uuid.UUID,
    body: CommentCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.add_comment(db, request_id, employee, body.comment)


@router.get("/requests/{request_id}/actions", response_model=list[ActionOut])
async def get_actions(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_actions(db, request_id, employee)


@router.post("/actions/{action_id}/read", response_model=ActionOut)
async def mark_action_read(
    action_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.mark_action_read(db, action_id, employee)
