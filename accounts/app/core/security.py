"""Password hashing, Basic-Auth parsing and verification tokens."""

import base64
import binascii
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from passlib.context import CryptContext

from accounts.app.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain, hashed)


def parse_basic_auth(header: Optional[str]) -> Optional[tuple[str, str]]:
    """Extract ``(email, password)`` from a ``Basic`` Authorization header.

    Args:
        header: Raw Authorization header value.

    Returns:
        The credential pair, or None when the header is missing, uses another
        scheme, is not valid base64, or lacks either part.
    """
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded.strip():
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    email, sep, password = decoded.partition(":")
    if not sep or not email or not password:
        return None
    return email, password


def create_verification_token() -> tuple[str, datetime]:
    """Create a random verification token and its UTC expiry."""
    token = secrets.token_hex(16)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.verification_token_ttl_minutes)
    return token, expires_at


def tokens_match(supplied: str, stored: Optional[str]) -> bool:
    """Constant-time token comparison. A missing stored token never matches."""
    if not stored:
        return False
    return hmac.compare_digest(supplied.encode(), stored.encode())
