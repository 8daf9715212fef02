"""Shared FastAPI dependencies for collaborators built in ``create_app``.

Services never reach for module-level clients; routers receive them from
``app.state`` through these functions, and tests swap them on the app.
"""

from fastapi import Request

from leavedesk.attachments.storage import ObjectStorage
from leavedesk.leave.workflow import ApprovalPolicy
from leavedesk.notifications.email import EmailDispatcher


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_email_dispatcher(request: Request) -> EmailDispatcher:
    return request.app.state.email


def get_approval_policy(request: Request) -> ApprovalPolicy:
    return request.app.state.approval_policy


def get_reminder_scheduler(request: Request):
    """The app's ``ReminderScheduler``."""
    return request.app.state.reminders
