"""Password hashing tests."""

import pytest

from vidtube.auth.password import (
    hash_password,
    hash_password_async,
    verify_password,
    verify_password_async,
)


def test_hash_is_salted():
    a = hash_password("Secret1", rounds=4)
    b = hash_password("Secret1", rounds=4)
    assert a != b
    assert a.startswith("$2b$04$")


def test_verify_roundtrip():
    h = hash_password("Secret1", rounds=4)
    assert verify_password("Secret1", h)
    assert not verify_password("secret1", h)


def test_malformed_hash_never_matches():
    assert verify_password("Secret1", "not-a-bcrypt-hash") is False
    assert verify_password("Secret1", "") is False


@pytest.mark.asyncio
async def test_async_wrappers():
    h = await hash_password_async("Secret1", rounds=4)
    assert await verify_password_async("Secret1", h)
    assert not await verify_password_async("wrong", h)
