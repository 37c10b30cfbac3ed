"""Tests for the email verification flow."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from accounts.app.models.user import User
from accounts.app.services.accounts import AccountService


async def _load_user(db_session, user_id: str) -> User:
    result = await db_session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one()
    await db_session.refresh(user)
    return user


@pytest.mark.asyncio
async def test_verify_success(client: AsyncClient, registered_user, publisher, db_session):
    message = publisher.messages[-1]
    resp = await client.get("/users/verify", params={"user": message.user_id, "token": message.token})
    assert resp.status_code == 200
    assert resp.content == b""

    user = await _load_user(db_session, message.user_id)
    assert user.verified is True
    assert user.verification_token is None
    assert user.token_expires_at is None


@pytest.mark.asyncio
async def test_verify_replay_is_idempotent(client: AsyncClient, registered_user, publisher):
    message = publisher.messages[-1]
    params = {"user": message.user_id, "token": message.token}
    first = await client.get("/users/verify", params=params)
    second = await client.get("/users/verify", params=params)
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.content == b""


@pytest.mark.asyncio
async def test_verify_after_success_ignores_token(client: AsyncClient, registered_user, publisher):
    message = publisher.messages[-1]
    await client.get("/users/verify", params={"user": message.user_id, "token": message.token})
    resp = await client.get("/users/verify", params={"user": message.user_id, "token": "anything"})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_verify_invalid_token(client: AsyncClient, registered_user, publisher, db_session):
    message = publisher.messages[-1]
    resp = await client.get("/users/verify", params={"user": message.user_id, "token": "0" * 32})
    assert resp.status_code == 400
    assert resp.content == b""

    user = await _load_user(db_session, message.user_id)
    assert user.verified is False


@pytest.mark.asyncio
async def test_verify_expired_token(client: AsyncClient, registered_user, publisher, db_session):
    """A correct but expired token is a 403, distinct from an invalid token."""
    message = publisher.messages[-1]
    user = await _load_user(db_session, message.user_id)
    user.token_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    await db_session.commit()

    resp = await client.get("/users/verify", params={"user": message.user_id, "token": message.token})
    assert resp.status_code == 403

    user = await _load_user(db_session, message.user_id)
    assert user.verified is False


@pytest.mark.asyncio
async def test_verify_unknown_user(client: AsyncClient):
    resp = await client.get("/users/verify", params={"user": "no-such-id", "token": "abc"})
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{}, {"user": "abc"}, {"token": "abc"}, {"user": "", "token": ""}])
async def test_verify_missing_params(client: AsyncClient, params):
    resp = await client.get("/users/verify", params=params)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_verified_user_can_read_self(client: AsyncClient, verified_headers: dict):
    resp = await client.get("/users/self", headers=verified_headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_verify_account_reports_replay(registered_user, publisher, db_session):
    message = publisher.messages[-1]
    service = AccountService(db_session)

    first = await service.verify_account(message.user_id, message.token)
    second = await service.verify_account(message.user_id, message.token)

    assert first.already_verified is False
    assert second.already_verified is True
    assert second.user_id == message.user_id
