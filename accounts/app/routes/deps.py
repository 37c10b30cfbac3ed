"""Shared route dependencies."""

import json
import logging
from typing import Any

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.app.core.database import get_db
from accounts.app.core.errors import AuthError, ValidationError
from accounts.app.core.security import parse_basic_auth, verify_password
from accounts.app.models.user import User

logger = logging.getLogger(__name__)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate Basic-Auth credentials and return the matching user.

    Raises:
        AuthError: Missing/malformed header, unknown email or wrong password.
    """
    credentials = parse_basic_auth(request.headers.get("Authorization"))
    if credentials is None:
        raise AuthError("Missing or malformed Basic credentials")
    email, password = credentials

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")
    return user


def reject_query_params(request: Request) -> None:
    """Dependency: 400 if the request carries any query parameters."""
    if request.query_params:
        raise ValidationError("Query parameters not allowed")


async def reject_body(request: Request) -> None:
    """Dependency: 400 if the request carries a non-empty body."""
    if await request.body():
        raise ValidationError("Request body not allowed")


async def read_json_object(request: Request) -> Any:
    """Parse the request body as JSON. Malformed JSON is a 400."""
    raw = await request.body()
    if not raw:
        raise ValidationError("Request body required")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.info("Bad JSON request: %s", exc)
        raise ValidationError("Malformed JSON") from exc
