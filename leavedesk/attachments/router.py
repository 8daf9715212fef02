"""Attachment router — upload/list per request, review, signed download."""

import uuid

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.attachments.schemas import AttachmentOut, AttachmentStatusUpdate
from leavedesk.attachments.service import AttachmentService
from leavedesk.attachments.storage import ObjectStorage
from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import UserRole
from leavedesk.common.rate_limit import UPLOAD_LIMIT, limiter
from leavedesk.config import settings
from leavedesk.database import get_db
from leavedesk.dependencies import get_storage
from leavedesk.employees.models import Employee

# Mounted under /api/v1/leave
request_router = APIRouter(prefix="", tags=["attachments"])
# Mounted under /api/v1/attachments
router = APIRouter(prefix="", tags=["attachments"])


@request_router.post(
    "/requests/{request_id}/attachments",
    response_model=AttachmentOut,
    status_code=201,
)
@limiter.limit(UPLOAD_LIMIT)
async def upload_attachment(
    request: Request,
    request_id: uuid.UUID,
    file: UploadFile = File(...),
    employee: Employee = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Attach a supporting document (multipart ``file`` field)."""
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    data = await file.read(max_bytes + 1)
    return await AttachmentService.upload(
        db,
        storage,
        request_id,
        file_name=file.filename or "document",
        content_type=file.content_type,
        data=data,
        uploader=employee,
        max_bytes=max_bytes,
    )


@request_router.get(
    "/requests/{request_id}/attachments",
    response_model=list[AttachmentOut],
)
async def list_attachments(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    return await AttachmentService.list_for_request(
        db, storage, request_id, employee,
        ttl_seconds=settings.SIGNED_URL_TTL_SECONDS,
    )


# /download is literal: keep it above /{attachment_id} routes.

@router.get("/download")
async def download_attachment(
    token: str = Query(..., min_length=1),
    storage: ObjectStorage = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Stream a document; the signed token is the only credential."""
    attachment, data = await AttachmentService.download(db, storage, token)
    return Response(
        content=data,
        media_type=attachment.file_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{attachment.file_name}"'},
    )


@router.put("/{attachment_id}/status", response_model=AttachmentOut)
async def review_attachment(
    attachment_id: uuid.UUID,
    body: AttachmentStatusUpdate,
    employee: Employee = Depends(
        require_role(UserRole.direction, UserRole.dgpec, UserRole.dg, UserRole.admin)
    ),
    db: AsyncSession = Depends(get_db),
):
    return await AttachmentService.set_status(
        db, attachment_id, body.status, body.comment, employee,
    )
