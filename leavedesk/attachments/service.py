"""Attachment registry — upload, review and signed download of justificatifs.

Bytes are written to storage before the metadata row is recorded. A storage
failure leaves no dangling record, and a failed insert removes the bytes.
Uploads stay open on decided requests: the registry is append-only.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.attachments.models import Attachment
from leavedesk.attachments.schemas import AttachmentOut
from leavedesk.attachments.storage import ObjectStorage, attachment_path, safe_file_name
from leavedesk.common.audit import as_utc, utcnow
from leavedesk.common.constants import VALIDATOR_ROLES, AttachmentStatus, UserRole
from leavedesk.common.exceptions import (
    AlreadyDecidedError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leavedesk.employees.models import Employee
from leavedesk.leave.models import LeaveRequest
from leavedesk.notifications.service import notify_attachment_decision

logger = logging.getLogger(__name__)

_REVIEWERS = VALIDATOR_ROLES | {UserRole.admin}


class AttachmentService:

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _request_for(
        db: AsyncSession, request_id: uuid.UUID, viewer: Employee,
    ) -> LeaveRequest:
        leave_req = await db.get(LeaveRequest, request_id)
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        if leave_req.employee_id != viewer.id and viewer.role not in _REVIEWERS:
            raise ForbiddenException("You can only access documents of your own requests.")
        return leave_req

    @staticmethod
    def _out(
        attachment: Attachment,
        storage: Optional[ObjectStorage] = None,
        ttl_seconds: int = 3600,
    ) -> AttachmentOut:
        out = AttachmentOut.model_validate(attachment)
        out.created_at = as_utc(out.created_at)
        out.reviewed_at = as_utc(out.reviewed_at)
        if storage is not None:
            out.download_url = storage.create_signed_url(attachment.file_path, ttl_seconds)
        return out

    # ── Upload ──────────────────────────────────────────────────────

    @staticmethod
    async def upload(
        db: AsyncSession,
        storage: ObjectStorage,
        request_id: uuid.UUID,
        *,
        file_name: str,
        content_type: Optional[str],
        data: bytes,
        uploader: Employee,
        max_bytes: int,
    ) -> AttachmentOut:
        await AttachmentService._request_for(db, request_id, uploader)

        if not data:
            raise ValidationException({"file": ["The uploaded file is empty."]})
        if len(data) > max_bytes:
            raise ValidationException(
                {"file": [f"File exceeds the {max_bytes // (1024 * 1024)} MB limit."]}
            )

        path = attachment_path(request_id, file_name)
        await storage.put(path, data)

        attachment = Attachment(
            request_id=request_id,
            file_name=safe_file_name(file_name),
            file_path=path,
            file_type=content_type,
            file_size=len(data),
            status=AttachmentStatus.pending,
            uploaded_by=uploader.id,
            created_at=utcnow(),
        )
        db.add(attachment)
        try:
            await db.flush()
        except Exception:
            logger.warning("Recording attachment %s failed; removing stored bytes", path)
            await storage.delete(path)
            raise

        logger.info("Attachment %s uploaded for request %s", attachment.id, request_id)
        return AttachmentService._out(attachment, storage)

    # ── Review ──────────────────────────────────────────────────────

    @staticmethod
    async def set_status(
        db: AsyncSession,
        attachment_id: uuid.UUID,
        status: AttachmentStatus,
        comment: Optional[str],
        validator: Employee,
    ) -> AttachmentOut:
        """Decide a pending document; decisions are final."""
        if status == AttachmentStatus.pending:
            raise ValidationException(
                {"status": ["Target status must be 'approved' or 'rejected'."]}
            )
        if validator.role not in _REVIEWERS:
            raise ForbiddenException("Only validators can review supporting documents.")

        attachment = (
            await db.execute(
                select(Attachment).where(Attachment.id == attachment_id).with_for_update()
            )
        ).scalars().first()
        if attachment is None:
            raise NotFoundException("Attachment", attachment_id)
        if attachment.status != AttachmentStatus.pending:
            raise AlreadyDecidedError(attachment_id, attachment.status.value)

        attachment.status = status
        attachment.comments = (comment or "").strip() or None
        attachment.reviewed_by = validator.id
        attachment.reviewed_at = utcnow()
        await db.flush()

        await notify_attachment_decision(db, attachment, attachment.uploaded_by)
        return AttachmentService._out(attachment)

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def list_for_request(
        db: AsyncSession,
        storage: ObjectStorage,
        request_id: uuid.UUID,
        viewer: Employee,
        *,
        ttl_seconds: int = 3600,
    ) -> list[AttachmentOut]:
        await AttachmentService._request_for(db, request_id, viewer)
        rows = (
            await db.execute(
                select(Attachment)
                .where(Attachment.request_id == request_id)
                .order_by(Attachment.created_at)
            )
        ).scalars().all()
        return [AttachmentService._out(a, storage, ttl_seconds) for a in rows]

    @staticmethod
    async def pending_count(db: AsyncSession, request_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Attachment)
            .where(
                Attachment.request_id == request_id,
                Attachment.status == AttachmentStatus.pending,
            )
        )
        return result.scalar_one()

    @staticmethod
    async def download(
        db: AsyncSession,
        storage: ObjectStorage,
        token: str,
    ) -> tuple[Attachment, bytes]:
        path = storage.verify_token(token)
        attachment = (
            await db.execute(select(Attachment).where(Attachment.file_path == path))
        ).scalars().first()
        if attachment is None:
            raise NotFoundException("Attachment", path)
        return attachment, await storage.get(path)
