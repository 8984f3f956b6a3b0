"""Outbound account emails.

Verification and password-reset links are sent as plain-text mail
through the Resend HTTP API. Delivery is synchronous from the caller's
point of view: ``send`` returns once Resend accepted the message or
raises ``DeliveryError``.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol
from urllib.parse import quote

import httpx

from storytime.core.config import Settings
from storytime.core.logging import get_logger

logger = get_logger(__name__)


class NotificationKind(str, Enum):
    """Which account email to send."""

    VERIFY = "verify"
    RESET = "reset"


class DeliveryError(Exception):
    """The email could not be handed to the mail provider."""


class Notifier(Protocol):
    """Anything that can deliver an account email."""

    async def send(
        self,
        kind: NotificationKind,
        to_address: str,
        token: str,
        name: str,
    ) -> None: ...


_SUBJECTS: dict[NotificationKind, str] = {
    NotificationKind.VERIFY: "StoryTime - Email Confirmation",
    NotificationKind.RESET: "StoryTime - Password Reset",
}


def render_message(
    kind: NotificationKind,
    token: str,
    name: str,
    frontend_base_url: str,
) -> tuple[str, str]:
    """Build the subject and plain-text body for an account email.

    Returns:
        ``(subject, body)``
    """
    base = frontend_base_url.rstrip("/")
    if kind is NotificationKind.VERIFY:
        link = f"{base}/verify-email/{quote(token, safe='')}"
        body = (
            f"Hi {name},\n\n"
            "Thanks for signing up to StoryTime. Confirm your email address "
            f"by opening this link:\n\n{link}\n\n"
            "The link expires in 2 hours. If it expires you will need to "
            "register again."
        )
    else:
        link = f"{base}/reset-password/{quote(token, safe='')}"
        body = (
            f"Hi {name},\n\n"
            f"Someone asked to reset your StoryTime password:\n\n{link}\n\n"
            "The link expires in 2 hours. If you didn't request this, you "
            "can safely ignore this email."
        )
    return _SUBJECTS[kind], body


class ResendNotifier:
    """Send account emails through the Resend API."""

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        frontend_base_url: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._frontend_base_url = frontend_base_url
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> ResendNotifier:
        return cls(
            api_key=settings.RESEND_API_KEY.get_secret_value(),
            sender=settings.EMAIL_FROM,
            frontend_base_url=settings.FRONTEND_BASE_URL,
            api_url=settings.RESEND_API_URL,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )

    async def send(
        self,
        kind: NotificationKind,
        to_address: str,
        token: str,
        name: str,
    ) -> None:
        """Deliver a verification or reset email.

        Raises:
            DeliveryError: On transport failure or a non-2xx response.
        """
        subject, body = render_message(kind, token, name, self._frontend_base_url)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._api_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": to_address,
                        "subject": subject,
                        "text": body,
                    },
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Failed to send account email",
                extra={
                    "context": {
                        "action": "send_email",
                        "kind": kind.value,
                        "error_type": type(e).__name__,
                        "status": "failed",
                    }
                },
            )
            raise DeliveryError(f"Failed to send {kind.value} email") from e

        logger.info(
            "Account email sent",
            extra={
                "context": {
                    "action": "send_email",
                    "kind": kind.value,
                    "status": "success",
                }
            },
        )


__all__ = [
    "DeliveryError",
    "NotificationKind",
    "Notifier",
    "ResendNotifier",
    "render_message",
]
