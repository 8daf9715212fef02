"""Access-token issuing and decoding (python-jose, HS256 by default)."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

from leavedesk.common.constants import UserRole
from leavedesk.config import settings


def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    *,
    expires_in: timedelta | None = None,
) -> str:
    """Sign an access token for *employee_id*.

    The ``role`` claim is informational only: authorisation always uses the
    role stored on the employee record.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=settings.JWT_EXPIRY_HOURS)),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry; raises ``jose.JWTError`` subclasses."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
