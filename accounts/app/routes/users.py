"""Account routes: register, verify email, read and update self."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.app.core.config import settings
from accounts.app.core.database import get_db
from accounts.app.core.errors import ValidationError
from accounts.app.models.user import User
from accounts.app.routes.deps import get_current_user, read_json_object, reject_body, reject_query_params
from accounts.app.services.accounts import AccountService, public_projection
from accounts.app.services.notifier import VerificationPublisher, get_publisher

router = APIRouter(prefix="/users", tags=["users"])

# Methods served per path; anything else is a 405
ALLOWED_METHODS = {
    "/users": ("POST",),
    "/users/verify": ("GET",),
    "/users/self": ("GET", "PUT"),
}


# ── Schemas ─────────────────────────────────────────────────────────


class AccountResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    account_created: str
    account_updated: str


def get_account_service(
    db: AsyncSession = Depends(get_db),
    publisher: VerificationPublisher = Depends(get_publisher),
) -> AccountService:
    return AccountService(db, publisher)


# ── Routes ──────────────────────────────────────────────────────────


@router.post("", response_model=AccountResponse, status_code=201)
async def create_user(request: Request, service: AccountService = Depends(get_account_service)):
    """Register a new account.

    Unauthenticated: an Authorization header or query string is a 400.
    Sends a verification email on success (best-effort).
    """
    reject_query_params(request)
    if "authorization" in request.headers:
        raise ValidationError("Registration must not carry credentials")

    payload = await read_json_object(request)
    user = await service.create_account(payload)
    return public_projection(user)


@router.get("/verify", status_code=200)
async def verify_email(
    user: Optional[str] = None,
    token: Optional[str] = None,
    service: AccountService = Depends(get_account_service),
):
    """Verify email address with the emailed token. Replays are a no-op success."""
    await service.verify_account(user, token)
    return Response(status_code=200)


@router.get("/self", response_model=AccountResponse)
async def get_self(
    request: Request,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    """Get the authenticated account. No query string or body allowed."""
    reject_query_params(request)
    await reject_body(request)
    fresh = await service.read_self(user, require_verified=settings.require_verified)
    return public_projection(fresh)


@router.put("/self", status_code=204)
async def update_self(
    request: Request,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    """Update first_name, last_name and/or password. Any other key is a 400."""
    reject_query_params(request)
    payload = await read_json_object(request)
    await service.update_self(user, payload)
    return Response(status_code=204)

