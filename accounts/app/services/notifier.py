"""Verification notifications, delivered by email through the Resend API."""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from accounts.app.core.config import settings

logger = logging.getLogger(__name__)

# Lazy import: resend may not be installed in test environments
_resend = None


def _get_resend():
    global _resend
    if _resend is None:
        import resend
        resend.api_key = settings.resend_api_key
        _resend = resend
    return _resend


@dataclass
class VerificationMessage:
    user_id: str
    email: str
    token: str
    link: str


def build_verification_link(user_id: str, token: str, base_url: str | None = None) -> str:
    """Build the activation link for a verification token."""
    base = (base_url or settings.public_base_url).rstrip("/")
    return f"{base}/users/verify?user={user_id}&token={token}"


class VerificationPublisher(ABC):
    """Delivers a verification message out-of-band."""

    @abstractmethod
    async def publish(self, message: VerificationMessage) -> bool:
        """Send the message. Returns True if delivered; never raises."""
        ...


class ResendVerificationPublisher(VerificationPublisher):
    """Sends the verification link as an email via Resend."""

    async def publish(self, message: VerificationMessage) -> bool:
        """Send an email verification link.

        Args:
            message: Recipient, token and activation link.

        Returns:
            True if sent successfully.
        """
        payload = {
            "from": settings.email_from,
            "to": [message.email],
            "subject": f"{settings.app_name}: Verify Your Email",
            "html": f"""
            <h2>Welcome to {settings.app_name}</h2>
            <p>Click the link below to verify your email address.
            This link expires in {settings.verification_token_ttl_minutes} minutes.</p>
            <p><a href="{message.link}">Verify Email</a></p>
            """,
        }

        try:
            resend = _get_resend()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, functools.partial(resend.Emails.send, payload))
            logger.info("Verification email sent to %s", message.email)
            return True
        except Exception:
            logger.exception("Failed to send verification email to %s", message.email)
            return False


_publisher: VerificationPublisher | None = None


def get_publisher() -> VerificationPublisher:
    """FastAPI dependency: the process-wide verification publisher."""
    global _publisher
    if _publisher is None:
        _publisher = ResendVerificationPublisher()
    return _publisher
