"""Account lifecycle: registration, verification, self read and update."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.app.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    TokenExpiredError,
    UnavailableError,
    ValidationError,
)
from accounts.app.core.security import create_verification_token, hash_password, tokens_match
from accounts.app.core.timezone import as_utc, to_display
from accounts.app.models.user import User
from accounts.app.services.notifier import (
    VerificationMessage,
    VerificationPublisher,
    build_verification_link,
)
from accounts.app.services.validation import validate_create, validate_update

logger = logging.getLogger(__name__)


def public_projection(user: User) -> dict[str, Any]:
    """Client-facing view of an account. No password or token internals."""
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "account_created": to_display(user.account_created),
        "account_updated": to_display(user.account_updated),
    }


@dataclass
class VerifyOutcome:
    user_id: str
    already_verified: bool


class AccountService:
    """Validation and state transitions for a single account per request."""

    def __init__(self, db: AsyncSession, publisher: Optional[VerificationPublisher] = None):
        self.db = db
        self.publisher = publisher

    # ── helpers ─────────────────────────────────────────────────────

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _commit(self, what: str) -> None:
        try:
            await self.db.commit()
        except OperationalError as exc:
            await self.db.rollback()
            logger.error("Database unreachable while trying to %s: %s", what, exc)
            raise UnavailableError(f"Failed to {what}") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Failed to %s: %s", what, exc)
            raise InternalError(f"Failed to {what}") from exc

    # ── operations ──────────────────────────────────────────────────

    async def create_account(self, payload: Any, base_url: Optional[str] = None) -> User:
        """Register a new, unverified account and publish its verification link.

        Raises:
            ValidationError: Payload fails field rules.
            ConflictError: Email already registered (including a lost race).
            UnavailableError: Database unreachable during the email lookup.
            InternalError: Persistence failed.
        """
        validate_create(payload).raise_for_error()

        try:
            existing = await self.get_by_email(payload["email"])
        except OperationalError as exc:
            raise UnavailableError("Database unreachable") from exc
        except SQLAlchemyError as exc:
            raise InternalError("Email lookup failed") from exc
        if existing:
            raise ConflictError("Email already registered")

        token, expires_at = create_verification_token()
        user = User(
            email=payload["email"],
            password_hash=hash_password(payload["password"]),
            first_name=payload["first_name"],
            last_name=payload["last_name"],
            verified=False,
            verification_token=token,
            token_expires_at=expires_at,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Email already registered") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Failed to create account: %s", exc)
            raise InternalError("Failed to create account") from exc
        await self.db.refresh(user)
        logger.info("Account created: %s", user.id)

        if self.publisher is not None:
            # Best-effort: the account stays unverified if delivery fails
            delivered = await self.publisher.publish(
                VerificationMessage(
                    user_id=user.id,
                    email=user.email,
                    token=token,
                    link=build_verification_link(user.id, token, base_url),
                )
            )
            if not delivered:
                logger.warning("Verification notification not delivered for %s", user.id)
        return user

    async def verify_account(self, user_id: Optional[str], token: Optional[str]) -> VerifyOutcome:
        """Consume a verification token.

        Order: missing params, unknown account, already verified (idempotent),
        token mismatch, expiry.

        Raises:
            ValidationError: Missing parameter, unknown account or bad token.
            TokenExpiredError: Token matched but has expired.
        """
        if not user_id or not token:
            raise ValidationError("user and token are required")

        user = await self.get_by_id(user_id)
        if not user:
            raise ValidationError("Unknown account")

        if user.verified:
            return VerifyOutcome(user_id=user.id, already_verified=True)

        if not tokens_match(token, user.verification_token):
            raise ValidationError("Invalid token")

        now = datetime.now(timezone.utc)
        if user.token_expires_at is None or now > as_utc(user.token_expires_at):
            raise TokenExpiredError("Verification token expired")

        user.verified = True
        user.verification_token = None
        user.token_expires_at = None
        user.account_updated = now
        await self._commit("verify account")
        logger.info("Account verified: %s", user.id)
        return VerifyOutcome(user_id=user.id, already_verified=False)

    async def read_self(self, user: User, require_verified: bool) -> User:
        """Reload the authenticated account.

        Raises:
            ForbiddenError: Unverified caller while verification is required.
            NotFoundError: Record vanished since authentication.
        """
        if require_verified and not user.verified:
            raise ForbiddenError("Account not verified")
        fresh = await self.get_by_id(user.id)
        if not fresh:
            raise NotFoundError("Account not found")
        return fresh

    async def update_self(self, user: User, payload: Any) -> User:
        """Apply a partial update of the mutable fields.

        Raises:
            ValidationError: Restricted, unknown or invalid field.
            NotFoundError: Record vanished since authentication.
        """
        validate_update(payload).raise_for_error()

        target = await self.get_by_id(user.id)
        if not target:
            raise NotFoundError("Account not found")

        if "first_name" in payload:
            target.first_name = payload["first_name"]
        if "last_name" in payload:
            target.last_name = payload["last_name"]
        if "password" in payload:
            target.password_hash = hash_password(payload["password"])
        target.account_updated = datetime.now(timezone.utc)

        await self._commit("update account")
        logger.info("Account updated: %s (%s)", target.id, ", ".join(sorted(payload)))
        return target
