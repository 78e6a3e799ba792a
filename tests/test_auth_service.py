"""AuthService tests against the database directly (no HTTP).

Learn: These pin down the credential-store side of the session state
machine: what ends up in users.refresh_token after each transition, and
what happens when a rotation loses a race or the store write fails.
"""

from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy import delete, select, update
from sqlalchemy.exc import OperationalError

from vidtube.db.models import User
from vidtube.errors import ApiError, ErrorKind
from vidtube.services.auth_service import AuthService


@pytest_asyncio.fixture()
async def svc(db_session, tokens):
    return AuthService(db_session, tokens, bcrypt_rounds=4)


@pytest_asyncio.fixture()
async def bob(svc):
    return await svc.register(
        full_name="Bob B", email="Bob@X.com", username=" Bob ", password="hunter22"
    )


async def _stored_row(db_session, user_id) -> User:
    result = await db_session.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ─── Register ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_register_stores_hash_not_password(svc, bob, db_session):
    row = await _stored_row(db_session, bob.id)
    assert row.password_hash != "hunter22"
    assert row.password_hash.startswith("$2b$")
    assert row.refresh_token is None


@pytest.mark.asyncio
async def test_register_normalizes_username_and_email(bob):
    assert bob.username == "bob"
    assert bob.email == "bob@x.com"


@pytest.mark.asyncio
async def test_register_result_has_no_credentials(bob):
    assert not hasattr(bob, "password_hash")
    assert not hasattr(bob, "refresh_token")


@pytest.mark.asyncio
async def test_register_conflict(svc, bob):
    with pytest.raises(ApiError) as exc:
        await svc.register(
            full_name="Other", email="other@x.com", username="BOB", password="pw"
        )
    assert exc.value.kind is ErrorKind.CONFLICT


# ─── Login / logout ─────────────────────────────────────


@pytest.mark.asyncio
async def test_login_persists_refresh_token(svc, bob, db_session):
    user, session = await svc.login("hunter22", username="bob")
    assert user.id == bob.id

    row = await _stored_row(db_session, bob.id)
    assert row.refresh_token == session.refresh_token


@pytest.mark.asyncio
async def test_login_accepts_email_any_case(svc, bob):
    user, _ = await svc.login("hunter22", email="  BOB@x.COM ")
    assert user.username == "bob"


@pytest.mark.asyncio
async def test_login_wrong_password_leaves_store_untouched(svc, bob, db_session):
    _, session = await svc.login("hunter22", username="bob")

    with pytest.raises(ApiError) as exc:
        await svc.login("nope", username="bob")
    assert exc.value.kind is ErrorKind.INVALID_CREDENTIALS

    row = await _stored_row(db_session, bob.id)
    assert row.refresh_token == session.refresh_token


@pytest.mark.asyncio
async def test_logout_clears_refresh_token(svc, bob, db_session):
    await svc.login("hunter22", username="bob")
    await svc.logout(bob.id)

    row = await _stored_row(db_session, bob.id)
    assert row.refresh_token is None


@pytest.mark.asyncio
async def test_refresh_after_logout_is_rejected(svc, bob):
    _, session = await svc.login("hunter22", username="bob")
    await svc.logout(bob.id)

    with pytest.raises(ApiError) as exc:
        await svc.refresh(session.refresh_token)
    assert exc.value.kind is ErrorKind.TOKEN_REUSE_OR_EXPIRED


# ─── Refresh ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_refresh_stores_the_rotated_token(svc, bob, db_session):
    _, first = await svc.login("hunter22", username="bob")
    second = await svc.refresh(first.refresh_token)

    assert second.refresh_token != first.refresh_token
    row = await _stored_row(db_session, bob.id)
    assert row.refresh_token == second.refresh_token


@pytest.mark.asyncio
async def test_refresh_missing_token(svc):
    with pytest.raises(ApiError) as exc:
        await svc.refresh(None)
    assert exc.value.kind is ErrorKind.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_refresh_for_deleted_user(svc, bob, db_session):
    _, session = await svc.login("hunter22", username="bob")
    await db_session.execute(delete(User).where(User.id == bob.id))
    await db_session.commit()

    with pytest.raises(ApiError) as exc:
        await svc.refresh(session.refresh_token)
    assert exc.value.kind is ErrorKind.INVALID_TOKEN


@pytest.mark.asyncio
async def test_refresh_loses_race_to_concurrent_rotation(svc, bob, db_session):
    """Both requests read the same stored token; only one may rotate it.

    The stored value is swapped out between the read and the write, which
    is exactly what a concurrent refresh that committed first looks like.
    """
    _, session = await svc.login("hunter22", username="bob")
    real_rotate = svc.users.rotate_refresh_token

    async def rotate_after_competitor(user_id, expected, new):
        await db_session.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token="winner-token")
            .execution_options(synchronize_session=False)
        )
        return await real_rotate(user_id, expected=expected, new=new)

    with patch.object(svc.users, "rotate_refresh_token", rotate_after_competitor):
        with pytest.raises(ApiError) as exc:
            await svc.refresh(session.refresh_token)
    assert exc.value.kind is ErrorKind.TOKEN_REUSE_OR_EXPIRED

    # The loser's transaction was rolled back; the original token survives
    row = await _stored_row(db_session, bob.id)
    assert row.refresh_token == session.refresh_token


@pytest.mark.asyncio
async def test_rotate_refresh_token_is_compare_and_swap(svc, bob, db_session):
    _, session = await svc.login("hunter22", username="bob")

    assert await svc.users.rotate_refresh_token(bob.id, expected="stale", new="x") is False
    assert (
        await svc.users.rotate_refresh_token(
            bob.id, expected=session.refresh_token, new="next"
        )
        is True
    )
    await db_session.commit()
    row = await _stored_row(db_session, bob.id)
    assert row.refresh_token == "next"


@pytest.mark.asyncio
async def test_session_persist_failure_is_internal(svc, bob):
    """If the refresh token cannot be stored, no tokens are handed out."""

    async def broken(*args, **kwargs):
        raise OperationalError("UPDATE users", {}, Exception("disk full"))

    with patch.object(svc.users, "set_refresh_token", broken):
        with pytest.raises(ApiError) as exc:
            await svc.login("hunter22", username="bob")
    assert exc.value.kind is ErrorKind.INTERNAL
    assert exc.value.status_code == 500


# ─── Change password ────────────────────────────────────


@pytest.mark.asyncio
async def test_change_password_rehashes(svc, bob, db_session):
    before = (await _stored_row(db_session, bob.id)).password_hash
    await svc.change_password(bob.id, "hunter22", "hunter33")
    after = (await _stored_row(db_session, bob.id)).password_hash
    assert before != after

    user, _ = await svc.login("hunter33", username="bob")
    assert user.id == bob.id


@pytest.mark.asyncio
async def test_change_password_requires_both_fields(svc, bob):
    with pytest.raises(ApiError) as exc:
        await svc.change_password(bob.id, "hunter22", " ")
    assert exc.value.kind is ErrorKind.VALIDATION
