"""Bounded retry with a per-attempt timeout for calls to external services.

The mail relay and the object store are the only collaborators that leave
the process; both go through :class:`RetryPolicy` so a hung dependency
cannot stall a request or the reminder sweep indefinitely.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from leavedesk.common.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_seconds: float = 2.0
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, settings.RETRY_MAX_ATTEMPTS),
            delay_seconds=settings.RETRY_DELAY_SECONDS,
            timeout_seconds=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
        )

    async def run(
        self,
        service: str,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        """Await ``call()`` up to ``max_attempts`` times.

        Waits a fixed ``delay_seconds`` between attempts. Cancellation is
        never retried. Raises :class:`ExternalServiceError` once attempts run
        out, chained to the last underlying error.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # noqa: BLE001
                last_error = e
                if attempt < self.max_attempts:
                    logger.warning(
                        "%s call failed (attempt %d/%d): %s",
                        service, attempt, self.max_attempts, e,
                    )
                    await asyncio.sleep(self.delay_seconds)
                    continue

        logger.error(
            "%s call failed after %d attempt(s): %s",
            service, self.max_attempts, last_error,
        )
        raise ExternalServiceError(
            service, f"{service} did not respond after {self.max_attempts} attempt(s)."
        ) from last_error
