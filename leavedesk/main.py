"""LeaveDesk — FastAPI Application Factory."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from leavedesk.attachments.router import request_router as attachment_request_router
from leavedesk.attachments.router import router as attachments_router
from leavedesk.attachments.storage import ObjectStorage
from leavedesk.common.exceptions import register_exception_handlers
from leavedesk.common.rate_limit import limiter
from leavedesk.config import settings
from leavedesk.dashboard.router import router as dashboard_router
from leavedesk.database import async_session_factory
from leavedesk.holidays.router import router as holidays_router
from leavedesk.leave.router import router as leave_router
from leavedesk.leave.workflow import ApprovalPolicy
from leavedesk.notifications.email import EmailDispatcher
from leavedesk.notifications.router import router as notifications_router
from leavedesk.quotas.router import router as quotas_router
from leavedesk.reminders.router import router as reminders_router
from leavedesk.reminders.service import ReminderScheduler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"

logger = logging.getLogger("leavedesk")


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the periodic reminder sweep; cancel it on shutdown."""
    sweep = None
    if settings.REMINDER_SWEEP_ENABLED:
        sweep = asyncio.create_task(
            app.state.reminders.run_forever(settings.REMINDER_SWEEP_INTERVAL_MINUTES * 60),
            name="reminder-sweep",
        )
    yield
    if sweep is not None:
        sweep.cancel()
        with suppress(asyncio.CancelledError):
            await sweep
        logger.info("Reminder sweep stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    _configure_logging()

    app = FastAPI(
        title="LeaveDesk",
        description="Leave requests with Direction → DGPEC → DG validation",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Collaborators (swapped on app.state by tests)
    app.state.storage = ObjectStorage.from_settings(settings)
    app.state.email = EmailDispatcher.from_settings(settings)
    app.state.approval_policy = ApprovalPolicy.from_settings(settings)
    app.state.reminders = ReminderScheduler.from_settings(
        settings, async_session_factory, app.state.email,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(attachment_request_router, prefix="/api/v1/leave", tags=["attachments"])
    app.include_router(attachments_router, prefix="/api/v1/attachments", tags=["attachments"])
    app.include_router(holidays_router, prefix="/api/v1/holidays", tags=["holidays"])
    app.include_router(quotas_router, prefix="/api/v1/quotas", tags=["quotas"])
    app.include_router(reminders_router, prefix="/api/v1/reminders", tags=["reminders"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["dashboard"])

    return app


app = create_app()
