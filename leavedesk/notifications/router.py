"""Notification endpoints — list, mark read, unread count."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user
from leavedesk.common.constants import NotificationType
from leavedesk.common.pagination import PaginationParams
from leavedesk.database import get_db
from leavedesk.employees.models import Employee
from leavedesk.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCount,
)
from leavedesk.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(default=None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.get_notifications(
        db,
        employee_id=employee.id,
        pagination=pagination,
        is_read=is_read,
        notification_type=type,
    )


# Literal paths are registered before /{notification_id}/read.

@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCount(count=await NotificationService.get_unread_count(db, employee.id))


@router.put("/read-all", response_model=UnreadCount)
async def mark_all_read(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark every unread notification read; returns how many changed."""
    return UnreadCount(count=await NotificationService.mark_all_read(db, employee.id))


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    return NotificationResponse.model_validate(notification)
