"""Custom exceptions and RFC 7807 Problem Detail error handlers.

Families:
  - validation (422): the caller sent something unusable, no side effect
  - state conflict (409): stale client state or a lost race, refresh first
  - external service (503): retries against a collaborator were exhausted
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://leavedesk.local/errors"

logger = logging.getLogger(__name__)


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


class InvalidRangeError(ValidationException):
    def __init__(self, start_date: Any, end_date: Any) -> None:
        super().__init__(
            {"dates": [f"start_date {start_date} is after end_date {end_date}."]}
        )
        self.error_type = "invalid-range"


class MissingCommentError(ValidationException):
    def __init__(self) -> None:
        super().__init__({"comment": ["A non-empty comment is required."]})
        self.error_type = "missing-comment"


class MissingReasonError(ValidationException):
    def __init__(self) -> None:
        super().__init__({"reason": ["A non-empty reason is required."]})
        self.error_type = "missing-reason"


class QuotaExceededError(ValidationException):
    def __init__(self, remaining: int, requested: int) -> None:
        super().__init__(
            {"quota": [
                f"Insufficient quota: {remaining} day(s) remaining, "
                f"{requested} requested."
            ]}
        )
        self.error_type = "quota-exceeded"


# ── State conflicts ─────────────────────────────────────────────────

class ConflictError(AppException):
    """409 — the entity is not in a state that allows the operation."""

    def __init__(
        self,
        detail: str,
        *,
        error_type: str = "conflict",
        title: str = "Conflict",
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            status_code=409,
            error_type=error_type,
            title=title,
            detail=detail,
            errors=errors,
        )


class DuplicateDateError(ConflictError):
    def __init__(self, value: Any) -> None:
        super().__init__(
            f"A holiday already exists on {value}.",
            error_type="duplicate-date",
            title="Duplicate Holiday",
            errors={"date": [f"'{value}' is already registered."]},
        )


class AlreadyFinalizedError(ConflictError):
    def __init__(self, request_id: Any, status: str) -> None:
        super().__init__(
            f"Leave request '{request_id}' is already final ({status}).",
            error_type="already-finalized",
            title="Request Already Finalized",
        )


class AlreadyDecidedError(ConflictError):
    def __init__(self, attachment_id: Any, status: str) -> None:
        super().__init__(
            f"Attachment '{attachment_id}' has already been {status}.",
            error_type="already-decided",
            title="Attachment Already Decided",
        )


class DuplicateDebitError(ConflictError):
    def __init__(self, request_id: Any) -> None:
        super().__init__(
            f"Quota has already been debited for leave request '{request_id}'.",
            error_type="duplicate-debit",
            title="Duplicate Debit",
        )


class PendingAttachmentsError(ConflictError):
    def __init__(self, request_id: Any, count: int) -> None:
        super().__init__(
            f"Leave request '{request_id}' still has {count} attachment(s) "
            "awaiting review.",
            error_type="pending-attachments",
            title="Attachments Pending Review",
        )


class ConcurrentModificationError(ConflictError):
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity_type} '{entity_id}' was modified concurrently. "
            "Refresh and try again.",
            error_type="concurrent-modification",
            title="Concurrent Modification",
        )


# ── Infrastructure ──────────────────────────────────────────────────

class ExternalServiceError(AppException):
    """503 — a collaborator (mail, storage) kept failing after retries."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(
            status_code=503,
            error_type="external-service",
            title=f"{service} Unavailable",
            detail=detail,
        )
        self.service = service


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "type": f"{BASE_ERROR_URI}/internal",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "The operation failed unexpectedly and was not applied.",
            "instance": str(request.url.path),
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)
