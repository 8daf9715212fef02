"""Notification service — CRUD operations and leave-workflow dispatchers."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import utcnow
from leavedesk.common.constants import DISPLAY_DATE_FORMAT, NotificationType
from leavedesk.common.exceptions import ForbiddenException, NotFoundException
from leavedesk.common.pagination import PaginationParams, paginate
from leavedesk.notifications.models import Notification
from leavedesk.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
            created_at=utcnow(),
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Paginated notifications for an employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )
        if is_read is not None:
            query = query.where(Notification.is_read.is_(is_read))
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        page = await paginate(
            db, query, pagination, model=Notification,
            transform=NotificationResponse.model_validate,
        )
        unread = await NotificationService.get_unread_count(db, employee_id)
        return NotificationListResponse(
            data=list(page.data),
            meta=NotificationListMeta(**page.meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark one notification read; only its recipient may do so."""
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, employee_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(db: AsyncSession, employee_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Leave workflow dispatchers ──────────────────────────────────────
# Called by the leave, reminder and attachment services with ORM objects.


def _period(leave_request) -> str:
    return (
        f"{leave_request.start_date.strftime(DISPLAY_DATE_FORMAT)} – "
        f"{leave_request.end_date.strftime(DISPLAY_DATE_FORMAT)}"
    )


def _request_url(leave_request) -> str:
    return f"/leave/requests/{leave_request.id}"


async def notify_validators_pending(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    validator_ids: Iterable[uuid.UUID],
    *,
    employee_name: str,
) -> list[Notification]:
    """One action-required notification per validator of the request's stage."""
    created = []
    for validator_id in validator_ids:
        created.append(
            await NotificationService.create_notification(
                db,
                recipient_id=validator_id,
                type=NotificationType.action_required,
                title="Leave Request Awaiting Validation",
                message=(
                    f"{employee_name} requested {leave_request.leave_type.value} leave "
                    f"({_period(leave_request)}, {leave_request.total_days} working "
                    "day(s)). Your validation is required."
                ),
                action_url=_request_url(leave_request),
                entity_type="leave_request",
                entity_id=leave_request.id,
            )
        )
    return created


async def notify_decision(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    *,
    approved: bool,
    stage_label: str,
    comment: str,
) -> Notification:
    """Tell the requester what the stage validator decided."""
    if approved:
        title = f"Leave Request Validated by {stage_label}"
        kind = NotificationType.approval
        verb = "validated"
    else:
        title = f"Leave Request Rejected by {stage_label}"
        kind = NotificationType.alert
        verb = "rejected"
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=kind,
        title=title,
        message=(
            f"Your leave request ({_period(leave_request)}) was {verb} by "
            f"{stage_label}. Comment: {comment}"
        ),
        action_url=_request_url(leave_request),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_reminder(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    validator_id: uuid.UUID,
    *,
    employee_name: str,
    days_delayed: int,
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=validator_id,
        type=NotificationType.reminder,
        title="Reminder: Leave Request Pending",
        message=(
            f"The leave request of {employee_name} ({_period(leave_request)}) "
            f"has been waiting for your validation for {days_delayed} day(s)."
        ),
        action_url=_request_url(leave_request),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_attachment_decision(
    db: AsyncSession,
    attachment,  # leavedesk.attachments.models.Attachment
    recipient_id: uuid.UUID,
) -> Notification:
    return await NotificationService.create_notification(
        db,
        recipient_id=recipient_id,
        type=NotificationType.info,
        title="Supporting Document Reviewed",
        message=(
            f"Your document '{attachment.file_name}' was {attachment.status.value}."
            + (f" Comment: {attachment.comments}" if attachment.comments else "")
        ),
        action_url=f"/leave/requests/{attachment.request_id}",
        entity_type="attachment",
        entity_id=attachment.id,
    )
