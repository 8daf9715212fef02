"""Leave service layer — submission, the three-stage approval machine, timeline.

Business logic:
  - total_days is the working-day count (weekends and public holidays excluded)
  - Direction → DGPEC → DG; each stage decided once, by its own role
  - final DG approval debits the quota ledger in the same transaction
  - every state change appends exactly one ActionLog entry
  - notifications are written in-transaction; e-mails go out after commit
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from leavedesk.attachments.service import AttachmentService
from leavedesk.common.audit import as_utc, utcnow
from leavedesk.common.constants import (
    DISPLAY_DATE_FORMAT,
    TERMINAL_STATUSES,
    VALIDATOR_ROLES,
    ActionKind,
    Decision,
    LeaveCategory,
    LeaveStatus,
    OverdraftPolicy,
    RequestPriority,
    UserRole,
    ValidationStage,
)
from leavedesk.common.exceptions import (
    AlreadyFinalizedError,
    ConcurrentModificationError,
    ForbiddenException,
    InvalidRangeError,
    MissingCommentError,
    NotFoundException,
    PendingAttachmentsError,
    QuotaExceededError,
    ValidationException,
)
from leavedesk.common.pagination import PaginationMeta, PaginationParams
from leavedesk.employees.models import Employee
from leavedesk.employees.schemas import EmployeeBrief
from leavedesk.employees.service import direction_scope, validators_for_stage
from leavedesk.leave.calculator import WorkingDaysCalculator
from leavedesk.leave.models import ActionLog, LeaveRequest, ValidationStep
from leavedesk.leave.schemas import (
    ActionOut,
    LeaveRequestCreate,
    LeaveRequestListResponse,
    LeaveRequestOut,
    ValidationHistoryItem,
    ValidationStepOut,
    WorkingDaysCalculation,
)
from leavedesk.leave.workflow import (
    DATE_OVERRIDE_STAGES,
    STAGE_LABELS,
    STAGE_ROLES,
    ApprovalPolicy,
    is_final_approval,
    next_status,
    stage_for,
    stage_for_role,
    status_awaiting,
)
from leavedesk.notifications.email import EmailMessage
from leavedesk.notifications.service import notify_decision, notify_validators_pending
from leavedesk.quotas.service import QuotaService

logger = logging.getLogger(__name__)

_REJECTED = [s for s in LeaveStatus if s.value.startswith("rejected_")]
_STAFF = VALIDATOR_ROLES | {UserRole.admin}


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: submission, transitions, timeline, listings."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        lock: bool = False,
    ) -> LeaveRequest:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        leave_req = (await db.execute(query)).scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_req

    @staticmethod
    def _ensure_can_view(leave_req: LeaveRequest, viewer: Employee) -> None:
        if leave_req.employee_id != viewer.id and viewer.role not in _STAFF:
            raise ForbiddenException("You can only view your own leave requests.")

    @staticmethod
    async def _steps_by_request(
        db: AsyncSession,
        request_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, list[ValidationStepOut]]:
        grouped: dict[uuid.UUID, list[ValidationStepOut]] = {rid: [] for rid in request_ids}
        if not request_ids:
            return grouped
        rows = await db.execute(
            select(ValidationStep, Employee.full_name)
            .join(Employee, Employee.id == ValidationStep.validator_id)
            .where(ValidationStep.request_id.in_(request_ids))
            .order_by(ValidationStep.decided_at)
        )
        for step, validator_name in rows.all():
            out = ValidationStepOut.model_validate(step)
            out.validator_name = validator_name
            out.decided_at = as_utc(out.decided_at)
            grouped[step.request_id].append(out)
        return grouped

    @staticmethod
    def _build_request_response(
        leave_req: LeaveRequest,
        *,
        employee: Optional[Employee] = None,
        steps: Optional[list[ValidationStepOut]] = None,
        calculation: Optional[WorkingDaysCalculation] = None,
        warnings: Optional[list[str]] = None,
    ) -> LeaveRequestOut:
        out = LeaveRequestOut.model_validate(leave_req)
        out.stage = stage_for(leave_req.status)
        out.stage_entered_at = as_utc(out.stage_entered_at)
        out.last_reminder_at = as_utc(out.last_reminder_at)
        out.decided_at = as_utc(out.decided_at)
        out.created_at = as_utc(out.created_at)
        out.updated_at = as_utc(out.updated_at)
        if employee is not None:
            out.employee = EmployeeBrief.model_validate(employee)
        out.steps = steps or []
        out.calculation = calculation
        out.warnings = warnings or []
        return out

    @staticmethod
    async def _response(
        db: AsyncSession,
        leave_req: LeaveRequest,
        **extra,
    ) -> LeaveRequestOut:
        employee = await db.get(Employee, leave_req.employee_id)
        steps = await LeaveService._steps_by_request(db, [leave_req.id])
        return LeaveService._build_request_response(
            leave_req, employee=employee, steps=steps[leave_req.id], **extra,
        )

    @staticmethod
    def _log_action(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        kind: ActionKind,
        comment: Optional[str],
        details: Optional[dict] = None,
    ) -> ActionLog:
        entry = ActionLog(
            request_id=request_id,
            actor_id=actor_id,
            kind=kind,
            comment=comment,
            details=details,
            read_by=[str(actor_id)],
            created_at=utcnow(),
        )
        db.add(entry)
        return entry

    @staticmethod
    async def _overlap_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Requests of *employee_id* that are not rejected and touch the range."""
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.not_in(_REJECTED),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        return (await db.execute(query)).scalar_one()

    @staticmethod
    async def _flush_guarded(db: AsyncSession, request_id: uuid.UUID) -> None:
        """Flush, mapping a lost optimistic-lock race to a 409."""
        try:
            await db.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning("Concurrent update on leave request %s: %s", request_id, exc)
            raise ConcurrentModificationError("LeaveRequest", request_id) from exc

    # ─────────────────────────────────────────────────────────────────
    # Working days
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def calculate_working_days(
        db: AsyncSession, start_date: date, end_date: date,
    ) -> WorkingDaysCalculation:
        return await WorkingDaysCalculator.calculate(db, start_date, end_date)

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_request(
        db: AsyncSession,
        employee: Employee,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Create a pending request and hand it to the Direction stage.

        Rejects ranges without a single working day and ranges overlapping
        another request of the same employee that is not rejected.
        """
        if data.start_date > data.end_date:
            raise InvalidRangeError(data.start_date, data.end_date)

        calculation = await WorkingDaysCalculator.calculate(db, data.start_date, data.end_date)
        if calculation.working_days <= 0:
            raise ValidationException(
                {"dates": ["No working days in the selected range "
                           "(all days are weekends or public holidays)."]}
            )

        if await LeaveService._overlap_count(db, employee.id, data.start_date, data.end_date):
            raise ValidationException(
                {"dates": ["You already have a leave request overlapping these dates."]}
            )

        now = utcnow()
        leave_req = LeaveRequest(
            employee_id=employee.id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=calculation.working_days,
            reason=(data.reason or "").strip() or None,
            priority=data.priority,
            status=LeaveStatus.pending,
            stage_entered_at=now,
            reminder_count=0,
            created_at=now,
            updated_at=now,
        )
        db.add(leave_req)
        await db.flush()

        LeaveService._log_action(
            db, leave_req.id, employee.id, ActionKind.submission, leave_req.reason,
            details={
                "leave_type": data.leave_type.value,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "total_days": calculation.working_days,
            },
        )

        validators = await validators_for_stage(db, ValidationStage.direction, employee.department)
        await notify_validators_pending(
            db, leave_req, [v.id for v in validators], employee_name=employee.full_name,
        )
        await db.flush()

        logger.info(
            "Leave request %s submitted by %s (%d working day(s))",
            leave_req.id, employee.id, calculation.working_days,
        )
        return LeaveService._build_request_response(
            leave_req, employee=employee, calculation=calculation,
        )

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer: Employee,
    ) -> LeaveRequestOut:
        leave_req = await LeaveService._get_request(db, request_id)
        LeaveService._ensure_can_view(leave_req, viewer)
        return await LeaveService._response(db, leave_req)

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        viewer: Employee,
        pagination: PaginationParams,
        *,
        scope: str = "my",
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveCategory] = None,
        department: Optional[str] = None,
        priority: Optional[RequestPriority] = None,
        employee_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> LeaveRequestListResponse:
        """List requests with filters.

        Scopes:
          - my: own requests only
          - queue: requests currently awaiting the viewer's stage
          - all: every request (validators and admin only)
        """
        query = select(LeaveRequest, Employee).join(
            Employee, Employee.id == LeaveRequest.employee_id
        )

        if scope == "my":
            query = query.where(LeaveRequest.employee_id == viewer.id)
        elif scope == "queue":
            stage = stage_for_role(viewer.role)
            if stage is None:
                raise ForbiddenException("Only stage validators have a validation queue.")
            query = query.where(LeaveRequest.status == status_awaiting(stage))
            if stage == ValidationStage.direction:
                query = query.where(direction_scope(viewer.department))
        elif scope == "all":
            if viewer.role not in _STAFF:
                raise ForbiddenException("Only validators can list all leave requests.")
        else:
            raise ValidationException({"scope": ["Must be one of: my, queue, all."]})

        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if leave_type is not None:
            query = query.where(LeaveRequest.leave_type == leave_type)
        if department:
            query = query.where(Employee.department == department)
        if priority is not None:
            query = query.where(LeaveRequest.priority == priority)
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if from_date:
            query = query.where(LeaveRequest.end_date >= from_date)
        if to_date:
            query = query.where(LeaveRequest.start_date <= to_date)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Employee.full_name).like(pattern),
                    func.lower(Employee.email).like(pattern),
                )
            )

        count_q = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await db.execute(count_q)).scalar_one()

        sort_column = LeaveRequest.created_at
        descending = True
        if pagination.sort:
            descending = pagination.sort.startswith("-")
            name = pagination.sort.lstrip("-")
            if name in LeaveRequest.__table__.columns:
                sort_column = getattr(LeaveRequest, name)
        query = query.order_by(sort_column.desc() if descending else sort_column.asc())

        rows = (
            await db.execute(query.offset(pagination.offset).limit(pagination.page_size))
        ).all()
        steps = await LeaveService._steps_by_request(db, [r.id for r, _ in rows])

        total_pages = math.ceil(total / pagination.page_size) if total else 0
        return LeaveRequestListResponse(
            data=[
                LeaveService._build_request_response(r, employee=e, steps=steps[r.id])
                for r, e in rows
            ],
            meta=PaginationMeta(
                page=pagination.page,
                page_size=pagination.page_size,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
            ),
        )

    # ─────────────────────────────────────────────────────────────────
    # Transition
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def transition(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Employee,
        decision: Decision,
        comment: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        expected_version: Optional[int] = None,
        policy: Optional[ApprovalPolicy] = None,
    ) -> LeaveRequestOut:
        """Approve or reject the current stage of a request.

        Nothing is written unless every check passes. On final DG approval
        the quota is debited in the same transaction; the overdraft policy
        decides whether a shortfall blocks or only warns.
        """
        policy = policy or ApprovalPolicy()
        comment = (comment or "").strip()
        if not comment:
            raise MissingCommentError()

        leave_req = await LeaveService._get_request(db, request_id, lock=True)
        if leave_req.status in TERMINAL_STATUSES:
            raise AlreadyFinalizedError(request_id, leave_req.status.value)
        if expected_version is not None and expected_version != leave_req.version:
            raise ConcurrentModificationError("LeaveRequest", request_id)

        stage = stage_for(leave_req.status)
        if actor.role != STAGE_ROLES[stage]:
            raise ForbiddenException(
                f"This request is awaiting {STAGE_LABELS[stage]} validation; "
                f"role '{actor.role.value}' cannot decide it."
            )
        if stage == ValidationStage.direction:
            employee = await db.get(Employee, leave_req.employee_id)
            owners = await validators_for_stage(db, stage, employee.department)
            if actor.id not in {v.id for v in owners}:
                raise ForbiddenException(
                    "This request belongs to another department's Direction validator."
                )

        # ── Optional date correction ───────────────────────────────
        override: Optional[dict] = None
        new_total = leave_req.total_days
        if start_date is not None or end_date is not None:
            if stage not in DATE_OVERRIDE_STAGES:
                raise ValidationException(
                    {"dates": ["Dates can only be corrected at the DGPEC or DG stage."]}
                )
            if start_date is None or end_date is None:
                raise ValidationException(
                    {"dates": ["start_date and end_date must be provided together."]}
                )
            calculation = await WorkingDaysCalculator.calculate(db, start_date, end_date)
            if calculation.working_days <= 0:
                raise ValidationException(
                    {"dates": ["No working days in the corrected range."]}
                )
            if (start_date, end_date) != (leave_req.start_date, leave_req.end_date):
                if await LeaveService._overlap_count(
                    db, leave_req.employee_id, start_date, end_date, exclude_id=leave_req.id,
                ):
                    raise ValidationException(
                        {"dates": ["The corrected range overlaps another leave request "
                                   "of this employee."]}
                    )
                new_total = calculation.working_days
                override = {
                    "old_start_date": leave_req.start_date.isoformat(),
                    "old_end_date": leave_req.end_date.isoformat(),
                    "new_start_date": start_date.isoformat(),
                    "new_end_date": end_date.isoformat(),
                    "old_total_days": leave_req.total_days,
                    "new_total_days": new_total,
                }

        target = next_status(leave_req.status, decision)
        final = is_final_approval(leave_req.status, decision)
        warnings: list[str] = []

        # ── Final-approval checks (before anything is written) ─────
        if final:
            if policy.require_attachment_review:
                pending = await AttachmentService.pending_count(db, request_id)
                if pending:
                    raise PendingAttachmentsError(request_id, pending)

            remaining = await QuotaService.remaining(
                db, leave_req.employee_id, leave_req.leave_type, for_update=True,
            )
            if new_total > remaining:
                if policy.overdraft == OverdraftPolicy.block:
                    raise QuotaExceededError(remaining, new_total)
                message = (
                    f"Quota overdraft: {new_total} day(s) approved with only "
                    f"{remaining} {leave_req.leave_type.value} day(s) remaining."
                )
                logger.warning("Leave request %s: %s", request_id, message)
                warnings.append(message)

        # ── Apply ──────────────────────────────────────────────────
        now = utcnow()
        previous_status = leave_req.status
        log_comment = comment
        if override is not None:
            log_comment = (
                f"{comment}\n[Dates corrected: "
                f"{leave_req.start_date.strftime(DISPLAY_DATE_FORMAT)}–"
                f"{leave_req.end_date.strftime(DISPLAY_DATE_FORMAT)} → "
                f"{start_date.strftime(DISPLAY_DATE_FORMAT)}–"
                f"{end_date.strftime(DISPLAY_DATE_FORMAT)}, "
                f"{override['old_total_days']} → {new_total} working day(s)]"
            )
            leave_req.start_date = start_date
            leave_req.end_date = end_date
            leave_req.total_days = new_total

        db.add(
            ValidationStep(
                request_id=leave_req.id,
                stage=stage,
                validator_id=actor.id,
                outcome=decision,
                comment=comment,
                stage_entered_at=leave_req.stage_entered_at,
                decided_at=now,
            )
        )
        leave_req.status = target
        leave_req.stage_entered_at = now
        leave_req.reminder_count = 0
        leave_req.last_reminder_at = None
        leave_req.updated_at = now
        if target in TERMINAL_STATUSES:
            leave_req.decided_at = now

        details: dict = {
            "stage": stage.value,
            "decision": decision.value,
            "from_status": previous_status.value,
            "to_status": target.value,
        }
        if override is not None:
            details["date_override"] = override
        if warnings:
            details["warnings"] = warnings
        LeaveService._log_action(
            db,
            leave_req.id,
            actor.id,
            ActionKind.validation if decision == Decision.approve else ActionKind.rejection,
            log_comment,
            details=details,
        )
        await LeaveService._flush_guarded(db, request_id)

        if final:
            await QuotaService.debit(
                db,
                leave_req.employee_id,
                leave_req.leave_type,
                leave_req.total_days,
                reason=f"Leave request {leave_req.id} approved by DG",
                request_id=leave_req.id,
            )

        # ── Notifications ──────────────────────────────────────────
        await notify_decision(
            db,
            leave_req,
            approved=decision == Decision.approve,
            stage_label=STAGE_LABELS[stage],
            comment=comment,
        )
        next_stage = stage_for(target)
        if next_stage is not None:
            employee = await db.get(Employee, leave_req.employee_id)
            validators = await validators_for_stage(db, next_stage, employee.department)
            await notify_validators_pending(
                db, leave_req, [v.id for v in validators], employee_name=employee.full_name,
            )

        logger.info(
            "Leave request %s: %s → %s by %s (%s)",
            request_id, previous_status.value, target.value, actor.id, stage.value,
        )
        return await LeaveService._response(db, leave_req, warnings=warnings)

    # ─────────────────────────────────────────────────────────────────
    # Priority / comments
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def update_priority(
        db: AsyncSession,
        request_id: uuid.UUID,
        priority: RequestPriority,
        actor: Employee,
    ) -> LeaveRequestOut:
        if actor.role not in VALIDATOR_ROLES:
            raise ForbiddenException("Only validators can change a request's priority.")

        leave_req = await LeaveService._get_request(db, request_id, lock=True)
        if leave_req.status in TERMINAL_STATUSES:
            raise AlreadyFinalizedError(request_id, leave_req.status.value)

        previous = leave_req.priority
        if previous != priority:
            leave_req.priority = priority
            leave_req.updated_at = utcnow()
            LeaveService._log_action(
                db, leave_req.id, actor.id, ActionKind.modification,
                f"Priority changed from {previous.value} to {priority.value}.",
                details={"field": "priority", "old": previous.value, "new": priority.value},
            )
            await LeaveService._flush_guarded(db, request_id)
        return await LeaveService._response(db, leave_req)

    @staticmethod
    async def add_comment(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Employee,
        comment: str,
    ) -> ActionOut:
        """Append a free comment; allowed on decided requests too."""
        comment = (comment or "").strip()
        if not comment:
            raise MissingCommentError()
        leave_req = await LeaveService._get_request(db, request_id)
        LeaveService._ensure_can_view(leave_req, actor)

        entry = LeaveService._log_action(db, leave_req.id, actor.id, ActionKind.comment, comment)
        await db.flush()
        return LeaveService._action_out(entry, actor.full_name)

    # ─────────────────────────────────────────────────────────────────
    # Timeline
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _action_out(entry: ActionLog, actor_name: Optional[str]) -> ActionOut:
        out = ActionOut.model_validate(entry)
        out.actor_name = actor_name
        out.created_at = as_utc(out.created_at)
        return out

    @staticmethod
    async def get_actions(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer: Employee,
    ) -> list[ActionOut]:
        leave_req = await LeaveService._get_request(db, request_id)
        LeaveService._ensure_can_view(leave_req, viewer)
        rows = await db.execute(
            select(ActionLog, Employee.full_name)
            .join(Employee, Employee.id == ActionLog.actor_id)
            .where(ActionLog.request_id == request_id)
            .order_by(ActionLog.created_at)
        )
        return [LeaveService._action_out(a, name) for a, name in rows.all()]

    @staticmethod
    async def mark_action_read(
        db: AsyncSession,
        action_id: uuid.UUID,
        user: Employee,
    ) -> ActionOut:
        entry = await db.get(ActionLog, action_id)
        if entry is None:
            raise NotFoundException("ActionLog", action_id)
        leave_req = await LeaveService._get_request(db, entry.request_id)
        LeaveService._ensure_can_view(leave_req, user)

        reader = str(user.id)
        if reader not in (entry.read_by or []):
            entry.read_by = [*(entry.read_by or []), reader]
            await db.flush()
        actor = await db.get(Employee, entry.actor_id)
        return LeaveService._action_out(entry, actor.full_name if actor else None)

    @staticmethod
    async def validation_history(
        db: AsyncSession,
        *,
        stage: Optional[ValidationStage] = None,
        limit: int = 50,
    ) -> list[ValidationHistoryItem]:
        """Decided stages, newest first."""
        requester = Employee.__table__.alias("requester")
        validator = Employee.__table__.alias("validator")
        query = (
            select(
                ValidationStep,
                LeaveRequest,
                requester.c.full_name,
                requester.c.department,
                validator.c.full_name,
            )
            .join(LeaveRequest, LeaveRequest.id == ValidationStep.request_id)
            .join(requester, requester.c.id == LeaveRequest.employee_id)
            .join(validator, validator.c.id == ValidationStep.validator_id)
            .order_by(ValidationStep.decided_at.desc())
            .limit(limit)
        )
        if stage is not None:
            query = query.where(ValidationStep.stage == stage)

        rows = (await db.execute(query)).all()
        return [
            ValidationHistoryItem(
                step_id=step.id,
                request_id=req.id,
                employee_name=employee_name,
                department=department,
                leave_type=req.leave_type,
                start_date=req.start_date,
                end_date=req.end_date,
                total_days=req.total_days,
                request_status=req.status,
                stage=step.stage,
                outcome=step.outcome,
                comment=step.comment,
                validator_name=validator_name,
                decided_at=as_utc(step.decided_at),
            )
            for step, req, employee_name, department, validator_name in rows
        ]


# ═════════════════════════════════════════════════════════════════════
# Outbound e-mail
# ═════════════════════════════════════════════════════════════════════


def decision_emails(out: LeaveRequestOut, comment: str) -> list[EmailMessage]:
    """The message sent to the requester after a stage decision."""
    if out.employee is None or not out.steps:
        return []
    step = out.steps[-1]
    verb = "validated" if step.outcome == Decision.approve else "rejected"
    label = STAGE_LABELS[step.stage]
    period = (
        f"{out.start_date.strftime(DISPLAY_DATE_FORMAT)} – "
        f"{out.end_date.strftime(DISPLAY_DATE_FORMAT)}"
    )
    lines = [
        f"Hello {out.employee.full_name},",
        "",
        f"Your {out.leave_type.value} leave request ({period}, "
        f"{out.total_days} working day(s)) was {verb} by {label}.",
        f"Comment: {comment}",
    ]
    if out.status == LeaveStatus.validated_by_dg:
        lines.append("Your leave is fully approved.")
    elif out.stage is not None:
        lines.append(f"It now awaits {STAGE_LABELS[out.stage]} validation.")
    return [
        EmailMessage(
            to=out.employee.email,
            subject=f"Leave request {verb} by {label}",
            content="\n".join(lines),
        )
    ]
