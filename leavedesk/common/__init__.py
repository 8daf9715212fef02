"""Common module — shared utilities for LeaveDesk."""

from leavedesk.common.audit import AuditMixin, as_utc, utcnow
from leavedesk.common.constants import (
    DEFAULT_PAGE_SIZE,
    DISPLAY_DATE_FORMAT,
    MAX_PAGE_SIZE,
    TERMINAL_STATUSES,
    VALIDATOR_ROLES,
    ActionKind,
    AttachmentStatus,
    Decision,
    LeaveCategory,
    LeaveStatus,
    NotificationType,
    OverdraftPolicy,
    RequestPriority,
    UserRole,
    ValidationStage,
)
from leavedesk.common.exceptions import (
    AlreadyDecidedError,
    AlreadyFinalizedError,
    AppException,
    ConcurrentModificationError,
    ConflictError,
    DuplicateDateError,
    DuplicateDebitError,
    ExternalServiceError,
    ForbiddenException,
    InvalidRangeError,
    MissingCommentError,
    MissingReasonError,
    NotFoundException,
    PendingAttachmentsError,
    QuotaExceededError,
    ValidationException,
    register_exception_handlers,
)
from leavedesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)
from leavedesk.common.retry import RetryPolicy

__all__ = [
    # Audit
    "AuditMixin",
    "as_utc",
    "utcnow",
    # Constants / Enums
    "ActionKind",
    "AttachmentStatus",
    "Decision",
    "LeaveCategory",
    "LeaveStatus",
    "NotificationType",
    "OverdraftPolicy",
    "RequestPriority",
    "UserRole",
    "ValidationStage",
    "TERMINAL_STATUSES",
    "VALIDATOR_ROLES",
    "DISPLAY_DATE_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "AlreadyDecidedError",
    "AlreadyFinalizedError",
    "ConcurrentModificationError",
    "ConflictError",
    "DuplicateDateError",
    "DuplicateDebitError",
    "ExternalServiceError",
    "ForbiddenException",
    "InvalidRangeError",
    "MissingCommentError",
    "MissingReasonError",
    "NotFoundException",
    "PendingAttachmentsError",
    "QuotaExceededError",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
    # Retry
    "RetryPolicy",
]
