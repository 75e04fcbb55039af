"""
Auth tests — password login, token round trip and account creation.
"""

import pytest

from timekeeper.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from timekeeper.models.user import User

AUTH = "/api/v1/auth"


def test_password_hash_round_trip():
    hashed = get_password_hash("correct-horse")
    assert hashed != "correct-horse"
    assert verify_password("correct-horse", hashed)
    assert not verify_password("wrong-horse", hashed)


def test_token_types_are_not_interchangeable():
    access = create_access_token(7)
    refresh = create_refresh_token(7)
    assert decode_access_token(access)["sub"] == "7"
    assert decode_refresh_token(refresh)["sub"] == "7"
    assert decode_access_token(refresh) is None
    assert decode_refresh_token(access) is None
    assert decode_access_token("not-a-jwt") is None


@pytest.mark.asyncio
async def test_login_and_refresh(async_client, session_factory):
    async with session_factory() as session:
        user = User(
            email="carol@example.com",
            hashed_password=get_password_hash("correct-horse"),
            full_name="Carol",
        )
        session.add(user)
        await session.commit()
        user_id = user.id

    r = await async_client.post(
        f"{AUTH}/login", data={"username": "Carol@Example.com ", "password": "wrong-horse"}
    )
    assert r.status_code == 401

    r = await async_client.post(
        f"{AUTH}/login", data={"username": "carol@example.com", "password": "correct-horse"}
    )
    assert r.status_code == 200
    tokens = r.json()
    assert tokens["token_type"] == "bearer"
    assert decode_access_token(tokens["access_token"])["sub"] == str(user_id)
    assert "access_token" in r.cookies

    r = await async_client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    assert decode_access_token(r.json()["access_token"])["sub"] == str(user_id)

    r = await async_client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["access_token"]})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_create_user_is_admin_only(async_client, auth, accounts):
    payload = {"email": "Dan@Example.com", "password": "long-enough", "role": "hr"}

    r = await async_client.post(f"{AUTH}/users", json=payload)
    assert r.status_code == 403

    auth.user = accounts["admin"]
    r = await async_client.post(f"{AUTH}/users", json=payload)
    assert r.status_code == 201
    assert r.json()["email"] == "dan@example.com"
    assert r.json()["role"] == "hr"

    r = await async_client.post(f"{AUTH}/users", json=payload)
    assert r.status_code == 400

    r = await async_client.post(f"{AUTH}/users", json={**payload, "password": "short"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_me_returns_current_user(async_client, accounts):
    r = await async_client.get(f"{AUTH}/me")
    assert r.status_code == 200
    assert r.json()["email"] == accounts["alice"].email
