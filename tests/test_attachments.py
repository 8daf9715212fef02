"""Attachment tests — upload, signed download links, review, storage failures."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.attachments.models import Attachment
from leavedesk.attachments.service import AttachmentService
from leavedesk.attachments.storage import (
    InvalidDownloadToken,
    ObjectStorage,
    attachment_path,
    safe_file_name,
)
from leavedesk.common.constants import AttachmentStatus, LeaveStatus
from leavedesk.common.exceptions import (
    AlreadyDecidedError,
    ExternalServiceError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leavedesk.config import settings
from leavedesk.notifications.models import Notification
from tests.conftest import FAST_RETRY, _seed_request, auth_headers

PDF = b"%PDF-1.4\n% certificat medical\n"


async def _upload(db, storage, req, uploader, data=PDF, name="certificat.pdf"):
    return await AttachmentService.upload(
        db, storage, req.id,
        file_name=name,
        content_type="application/pdf",
        data=data,
        uploader=uploader,
        max_bytes=1024,
    )


# ═════════════════════════════════════════════════════════════════════
# 1. Storage helpers
# ═════════════════════════════════════════════════════════════════════


class TestStorage:

    def test_safe_file_name(self):
        assert safe_file_name("../../etc/passwd") == "passwd"
        assert safe_file_name("C:\\Users\\awa\\arrêt maladie.pdf") == "arr_t_maladie.pdf"
        assert safe_file_name("...") == "document"

    def test_attachment_path_is_scoped_to_request(self):
        request_id = uuid.uuid4()
        path = attachment_path(request_id, "scan (1).png")
        assert path.startswith(f"justificatifs/{request_id}/")
        assert path.endswith("_scan_1_.png")

    async def test_put_get_delete(self, storage: ObjectStorage):
        await storage.put("justificatifs/x/1_a.pdf", PDF)
        assert await storage.get("justificatifs/x/1_a.pdf") == PDF

        await storage.delete("justificatifs/x/1_a.pdf")
        with pytest.raises(NotFoundException):
            await storage.get("justificatifs/x/1_a.pdf")

    async def test_paths_cannot_escape_root(self, storage: ObjectStorage):
        with pytest.raises(NotFoundException):
            await storage.get("../outside.txt")

    def test_signed_token_round_trip(self, storage: ObjectStorage):
        url = storage.create_signed_url("justificatifs/x/1_a.pdf")
        token = url.split("token=", 1)[1]
        assert storage.verify_token(token) == "justificatifs/x/1_a.pdf"

    def test_expired_or_foreign_token_rejected(self, storage: ObjectStorage, tmp_path):
        expired = storage.create_signed_url("a.pdf", ttl_seconds=-10).split("token=", 1)[1]
        with pytest.raises(InvalidDownloadToken) as exc_info:
            storage.verify_token(expired)
        assert "expired" in exc_info.value.detail

        other = ObjectStorage(tmp_path, secret="another-secret", retry=FAST_RETRY)
        foreign = other.create_signed_url("a.pdf").split("token=", 1)[1]
        with pytest.raises(InvalidDownloadToken):
            storage.verify_token(foreign)


# ═════════════════════════════════════════════════════════════════════
# 2. Service
# ═════════════════════════════════════════════════════════════════════


class TestAttachmentService:

    async def test_upload_records_pending_document(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)

        out = await _upload(db, storage, req, people.employee, name="../certificat médical.pdf")

        assert out.status == AttachmentStatus.pending
        assert out.file_name == "certificat_m_dical.pdf"
        assert out.file_size == len(PDF)
        assert out.download_url.startswith("/api/v1/attachments/download?token=")
        assert await storage.get(out.file_path) == PDF

    async def test_upload_allowed_on_final_request(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee, status=LeaveStatus.validated_by_dg)

        out = await _upload(db, storage, req, people.employee)
        assert out.request_id == req.id

    async def test_empty_and_oversized_files_rejected(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)

        with pytest.raises(ValidationException):
            await _upload(db, storage, req, people.employee, data=b"")
        with pytest.raises(ValidationException):
            await _upload(db, storage, req, people.employee, data=b"x" * 2048)

    async def test_colleague_cannot_upload(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)

        with pytest.raises(ForbiddenException):
            await _upload(db, storage, req, people.colleague)

    async def test_storage_failure_leaves_no_record(self, db: AsyncSession, people, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_bytes(b"")
        broken = ObjectStorage(blocker, secret="s", retry=FAST_RETRY)
        req = await _seed_request(db, people.employee)

        with pytest.raises(ExternalServiceError):
            await _upload(db, broken, req, people.employee)

        count = (await db.execute(select(func.count()).select_from(Attachment))).scalar_one()
        assert count == 0

    async def test_failed_insert_removes_stored_bytes(
        self, db: AsyncSession, people, storage, monkeypatch,
    ):
        req = await _seed_request(db, people.employee)
        stored: list[str] = []
        original_put = storage.put

        async def recording_put(path, data):
            stored.append(path)
            return await original_put(path, data)

        async def failing_flush(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(storage, "put", recording_put)
        monkeypatch.setattr(db, "flush", failing_flush)

        with pytest.raises(RuntimeError):
            await _upload(db, storage, req, people.employee)
        monkeypatch.undo()

        assert len(stored) == 1
        with pytest.raises(NotFoundException):
            await storage.get(stored[0])

    async def test_review_is_final_and_notifies_uploader(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)
        uploaded = await _upload(db, storage, req, people.employee)

        out = await AttachmentService.set_status(
            db, uploaded.id, AttachmentStatus.rejected, " Illegible scan ", people.dgpec,
        )
        assert out.status == AttachmentStatus.rejected
        assert out.comments == "Illegible scan"
        assert out.reviewed_by == people.dgpec.id
        assert out.reviewed_at is not None

        with pytest.raises(AlreadyDecidedError):
            await AttachmentService.set_status(
                db, uploaded.id, AttachmentStatus.approved, None, people.dg,
            )

        [note] = (
            await db.execute(select(Notification).where(Notification.entity_id == uploaded.id))
        ).scalars().all()
        assert note.recipient_id == people.employee.id
        assert "Illegible scan" in note.message

    async def test_pending_is_not_a_review_target(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)
        uploaded = await _upload(db, storage, req, people.employee)

        with pytest.raises(ValidationException):
            await AttachmentService.set_status(
                db, uploaded.id, AttachmentStatus.pending, None, people.direction,
            )

    async def test_employee_cannot_review(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)
        uploaded = await _upload(db, storage, req, people.employee)

        with pytest.raises(ForbiddenException):
            await AttachmentService.set_status(
                db, uploaded.id, AttachmentStatus.approved, None, people.employee,
            )

    async def test_pending_count(self, db: AsyncSession, people, storage):
        req = await _seed_request(db, people.employee)
        first = await _upload(db, storage, req, people.employee, name="a.pdf")
        await _upload(db, storage, req, people.employee, name="b.pdf")
        await AttachmentService.set_status(
            db, first.id, AttachmentStatus.approved, None, people.direction,
        )

        assert await AttachmentService.pending_count(db, req.id) == 1


# ═════════════════════════════════════════════════════════════════════
# 3. API
# ═════════════════════════════════════════════════════════════════════


class TestAttachmentAPI:

    async def test_upload_list_and_download(self, client, db, people):
        req = await _seed_request(db, people.employee)
        await db.commit()

        resp = await client.post(
            f"/api/v1/leave/requests/{req.id}/attachments",
            files={"file": ("certificat.pdf", PDF, "application/pdf")},
            headers=auth_headers(people.employee),
        )
        assert resp.status_code == 201
        uploaded = resp.json()
        assert uploaded["status"] == "pending"

        resp = await client.get(
            f"/api/v1/leave/requests/{req.id}/attachments",
            headers=auth_headers(people.direction),
        )
        [listed] = resp.json()
        assert listed["id"] == uploaded["id"]

        # The signed link is the only credential needed
        resp = await client.get(listed["download_url"])
        assert resp.status_code == 200
        assert resp.content == PDF
        assert resp.headers["content-type"] == "application/pdf"
        assert 'filename="certificat.pdf"' in resp.headers["content-disposition"]

    async def test_tampered_link_is_401(self, client, people):
        resp = await client.get(
            "/api/v1/attachments/download", params={"token": "not-a-token"},
        )
        assert resp.status_code == 401
        assert resp.json()["type"].endswith("/invalid-download-token")

    async def test_link_to_unknown_document_is_404(self, client, people, storage):
        url = storage.create_signed_url("justificatifs/missing/1_a.pdf")
        resp = await client.get(url)
        assert resp.status_code == 404

    async def test_oversized_upload_is_422(self, client, db, people):
        req = await _seed_request(db, people.employee)
        await db.commit()

        too_big = b"x" * (settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024 + 1)
        resp = await client.post(
            f"/api/v1/leave/requests/{req.id}/attachments",
            files={"file": ("big.bin", too_big, "application/octet-stream")},
            headers=auth_headers(people.employee),
        )
        assert resp.status_code == 422

    async def test_review_flow(self, client, db, people):
        req = await _seed_request(db, people.employee)
        await db.commit()
        resp = await client.post(
            f"/api/v1/leave/requests/{req.id}/attachments",
            files={"file": ("certificat.pdf", PDF, "application/pdf")},
            headers=auth_headers(people.employee),
        )
        attachment_id = resp.json()["id"]

        resp = await client.put(
            f"/api/v1/attachments/{attachment_id}/status",
            json={"status": "approved"},
            headers=auth_headers(people.employee),
        )
        assert resp.status_code == 403

        resp = await client.put(
            f"/api/v1/attachments/{attachment_id}/status",
            json={"status": "approved", "comment": "Valid"},
            headers=auth_headers(people.dgpec),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"

        resp = await client.put(
            f"/api/v1/attachments/{attachment_id}/status",
            json={"status": "rejected"},
            headers=auth_headers(people.dg),
        )
        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/already-decided")
