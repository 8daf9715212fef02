"""Object storage for supporting documents.

Files live on the local filesystem under ``UPLOAD_DIR``; downloads go through
short-lived signed tokens (JWT, ``type=download``) so links can be shared in
e-mails without exposing the store.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import aiofiles
import aiofiles.os
from jose import ExpiredSignatureError, JWTError, jwt

from leavedesk.common.exceptions import AppException, NotFoundException
from leavedesk.common.retry import RetryPolicy

logger = logging.getLogger(__name__)

DOWNLOAD_ROUTE = "/api/v1/attachments/download"
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_file_name(name: str) -> str:
    """Keep the base name only, with anything outside ``[A-Za-z0-9._-]`` replaced."""
    base = Path(name.replace("\\", "/")).name
    cleaned = _UNSAFE.sub("_", base).strip("._")
    return cleaned[:150] or "document"


def attachment_path(request_id, file_name: str, now: Optional[datetime] = None) -> str:
    ts = int((now or datetime.now(timezone.utc)).timestamp() * 1000)
    return f"justificatifs/{request_id}/{ts}_{safe_file_name(file_name)}"


class InvalidDownloadToken(AppException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=401,
            error_type="invalid-download-token",
            title="Invalid Download Link",
            detail=detail,
        )


class ObjectStorage:

    def __init__(
        self,
        root: str | Path,
        *,
        secret: str,
        algorithm: str = "HS256",
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        self.root = Path(root)
        self._secret = secret
        self._algorithm = algorithm
        self.retry = retry or RetryPolicy()

    @classmethod
    def from_settings(cls, settings) -> "ObjectStorage":
        return cls(
            settings.UPLOAD_DIR,
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            retry=RetryPolicy.from_settings(settings),
        )

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise NotFoundException("File", path)
        return target

    # ── Bytes ───────────────────────────────────────────────────────

    async def _write(self, target: Path, data: bytes) -> None:
        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        async with aiofiles.open(target, "wb") as fh:
            await fh.write(data)

    async def put(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        await self.retry.run("Object storage", lambda: self._write(target, data))
        logger.info("Stored %s (%d bytes)", path, len(data))
        return path

    async def get(self, path: str) -> bytes:
        target = self._resolve(path)
        if not await aiofiles.os.path.isfile(target):
            raise NotFoundException("File", path)
        async with aiofiles.open(target, "rb") as fh:
            return await fh.read()

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        if await aiofiles.os.path.isfile(target):
            await aiofiles.os.remove(target)

    # ── Signed URLs ─────────────────────────────────────────────────

    def create_signed_url(self, path: str, ttl_seconds: int = 3600) -> str:
        payload = {
            "type": "download",
            "path": path,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        return f"{DOWNLOAD_ROUTE}?token={quote(token)}"

    def verify_token(self, token: str) -> str:
        """Return the storage path a download token grants access to."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise InvalidDownloadToken("The download link has expired.")
        except JWTError:
            raise InvalidDownloadToken("The download link is invalid.")
        if payload.get("type") != "download" or not payload.get("path"):
            raise InvalidDownloadToken("The download link is invalid.")
        return payload["path"]
