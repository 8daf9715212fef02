"""Outbound e-mail through the HTTP mail relay.

The relay accepts ``POST {to, subject, content}``. With no relay configured
the dispatcher runs as a development outbox: messages are logged, kept in
memory and reported as delivered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from leavedesk.common.retry import RetryPolicy

logger = logging.getLogger(__name__)

OUTBOX_LIMIT = 200


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    content: str


class EmailDispatcher:

    def __init__(
        self,
        url: str = "",
        *,
        sender: str = "",
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.sender = sender
        self.retry = retry or RetryPolicy()
        self._transport = transport
        self.outbox: list[EmailMessage] = []

    @classmethod
    def from_settings(cls, settings) -> "EmailDispatcher":
        return cls(
            settings.EMAIL_DISPATCH_URL,
            sender=settings.EMAIL_FROM,
            retry=RetryPolicy.from_settings(settings),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def _post(self, message: EmailMessage) -> None:
        payload = {"to": message.to, "subject": message.subject, "content": message.content}
        if self.sender:
            payload["from"] = self.sender
        async with httpx.AsyncClient(
            timeout=self.retry.timeout_seconds, transport=self._transport,
        ) as client:
            resp = await client.post(self.url, json=payload)
            resp.raise_for_status()

    async def send(self, to: str, subject: str, body: str) -> bool:
        """Deliver one message; raises ``ExternalServiceError`` once retries run out."""
        message = EmailMessage(to=to, subject=subject, content=body)
        if not self.is_configured:
            logger.info("E-mail (outbox) to=%s subject=%r", to, subject)
            self.outbox.append(message)
            del self.outbox[:-OUTBOX_LIMIT]
            return True

        await self.retry.run("E-mail relay", lambda: self._post(message))
        logger.info("E-mail sent to=%s subject=%r", to, subject)
        return True

    async def send_quietly(self, messages: Iterable[EmailMessage]) -> int:
        """Background-task entry point: send each message, log failures.

        Returns how many were delivered. A transition has already committed
        by the time this runs, so a relay outage must not surface as an error.
        """
        delivered = 0
        for message in messages:
            try:
                await self.send(message.to, message.subject, message.content)
                delivered += 1
            except Exception:  # noqa: BLE001
                logger.exception("Failed to deliver e-mail to %s", message.to)
        return delivered
