"""Attachment Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import AttachmentStatus


class AttachmentStatusUpdate(BaseModel):
    status: AttachmentStatus
    comment: Optional[str] = Field(None, max_length=2000)


class AttachmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    request_id: uuid.UUID
    file_name: str
    file_path: str
    file_type: Optional[str] = None
    file_size: int
    status: AttachmentStatus
    comments: Optional[str] = None
    uploaded_by: uuid.UUID
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    download_url: Optional[str] = None
