"""Auth service — registration, login, logout, refresh, password change.

Learn: Per-user session state machine:

    LoggedOut ──login──▶ LoggedIn ──refresh──▶ LoggedIn (tokens rotated)
        ▲                    │
        └──────logout────────┘

The state lives in one column, users.refresh_token. A refresh token is
valid if and only if it is byte-equal to that column; everything else
(signature, expiry) is a precondition checked first. Any session that
was superseded — by a later login, a refresh, or a logout — therefore
stops working immediately, even though its JWT still verifies.
"""

import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.auth.jwt import TokenError, TokenIssuer, subject_id
from vidtube.auth.password import (
    DEFAULT_ROUNDS,
    hash_password_async,
    verify_password_async,
)
from vidtube.db.models import User
from vidtube.errors import ApiError, ErrorKind
from vidtube.services.user_service import CurrentUser, UserService

logger = structlog.get_logger()


@dataclass(frozen=True)
class Session:
    """A freshly issued token pair."""

    access_token: str
    refresh_token: str


def _blank(*values: Optional[str]) -> bool:
    return any(v is None or not v.strip() for v in values)


class AuthService:
    """Business logic for account sessions."""

    def __init__(
        self,
        db: AsyncSession,
        tokens: TokenIssuer,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ):
        self.db = db
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        self.users = UserService(db)

    # ─── Register ───────────────────────────────────────

    async def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        avatar: str = "",
        cover_image: Optional[str] = None,
    ) -> CurrentUser:
        """Create an account. Returns the sanitized user."""
        if _blank(full_name, email, username, password):
            raise ApiError(ErrorKind.VALIDATION, "All fields are required")

        if await self.users.identity_taken(username=username, email=email):
            raise ApiError(
                ErrorKind.CONFLICT, "User with email or username already exists"
            )

        password_hash = await hash_password_async(password, self.bcrypt_rounds)
        user = await self.users.create_user(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            avatar=avatar.strip(),
            cover_image=cover_image,
        )

        created = await self.users.get_identity(user.id)
        if created is None:
            raise ApiError(
                ErrorKind.INTERNAL, "Something went wrong while registering the user"
            )

        logger.info("auth.registered", user_id=str(user.id), username=user.username)
        return created

    # ─── Session issuance ───────────────────────────────

    async def issue_session(self, user: User) -> Session:
        """Mint an access/refresh pair and persist the refresh token.

        The pair only leaves this method once the refresh token is
        committed; a client must never hold a refresh token the store
        does not know about.
        """
        # rollback() expires ``user``; only the plain id is safe afterwards
        user_id = user.id
        session = self._mint(user)
        try:
            await self.users.set_refresh_token(user_id, session.refresh_token)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("auth.session_persist_failed", user_id=str(user_id), error=str(e))
            raise ApiError(
                ErrorKind.INTERNAL,
                "Something went wrong while generating refresh and access token",
            )
        return session

    def _mint(self, user: User) -> Session:
        return Session(
            access_token=self.tokens.issue_access_token(user),
            refresh_token=self.tokens.issue_refresh_token(user),
        )

    # ─── Login ──────────────────────────────────────────

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> tuple[CurrentUser, Session]:
        """LoggedOut → LoggedIn. Overwrites any previous session."""
        if _blank(username) and _blank(email):
            raise ApiError(ErrorKind.VALIDATION, "username or email is required")
        if _blank(password):
            raise ApiError(ErrorKind.VALIDATION, "Password is required")

        user = await self.users.find_by_login(username=username, email=email)
        if user is None:
            raise ApiError(ErrorKind.NOT_FOUND, "User does not exist")

        if not await verify_password_async(password, user.password_hash):
            logger.info("auth.login_failed", user_id=str(user.id))
            raise ApiError(ErrorKind.INVALID_CREDENTIALS, "Invalid user credentials")

        session = await self.issue_session(user)
        identity = await self.users.get_identity(user.id)
        if identity is None:
            raise ApiError(ErrorKind.INTERNAL)

        logger.info("auth.login", user_id=str(user.id))
        return identity, session

    # ─── Logout ─────────────────────────────────────────

    async def logout(self, user_id: uuid.UUID) -> None:
        """LoggedIn → LoggedOut. The stored refresh token is unset."""
        try:
            await self.users.clear_refresh_token(user_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("auth.logout_failed", user_id=str(user_id), error=str(e))
            raise ApiError(ErrorKind.INTERNAL, "Something went wrong while logging out")
        logger.info("auth.logout", user_id=str(user_id))

    # ─── Refresh ────────────────────────────────────────

    async def refresh(self, incoming: Optional[str]) -> Session:
        """LoggedIn → LoggedIn with a rotated token pair.

        Learn: Order of checks matters for the error a client sees:
        1. no token            → UNAUTHENTICATED
        2. bad signature/exp   → INVALID_TOKEN
        3. user gone           → INVALID_TOKEN
        4. not the stored one  → TOKEN_REUSE_OR_EXPIRED (replay of a
           superseded token, or a token from before a logout)
        The final rotation is a compare-and-swap, so a concurrent refresh
        that got there first also lands in case 4.
        """
        if not incoming:
            raise ApiError(ErrorKind.UNAUTHENTICATED, "Unauthorized request")

        try:
            payload = self.tokens.verify_refresh_token(incoming)
        except TokenError as e:
            raise ApiError(ErrorKind.INVALID_TOKEN, f"Invalid refresh token: {e}")

        user = await self.users.get_by_id(subject_id(payload))
        if user is None:
            raise ApiError(ErrorKind.INVALID_TOKEN, "Invalid refresh token")
        user_id = user.id

        stored = user.refresh_token or ""
        if not secrets.compare_digest(incoming.encode(), stored.encode()):
            logger.warning("auth.refresh_reuse_detected", user_id=str(user_id))
            raise ApiError(ErrorKind.TOKEN_REUSE_OR_EXPIRED)

        session = self._mint(user)
        try:
            rotated = await self.users.rotate_refresh_token(
                user_id, expected=incoming, new=session.refresh_token
            )
            if rotated:
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("auth.refresh_persist_failed", user_id=str(user_id), error=str(e))
            raise ApiError(
                ErrorKind.INTERNAL,
                "Something went wrong while generating refresh and access token",
            )

        if not rotated:
            # A concurrent refresh (or a logout) got there first
            await self.db.rollback()
            logger.warning("auth.refresh_lost_race", user_id=str(user_id))
            raise ApiError(ErrorKind.TOKEN_REUSE_OR_EXPIRED)

        logger.info("auth.refresh", user_id=str(user_id))
        return session

    # ─── Change password ────────────────────────────────

    async def change_password(
        self, user_id: uuid.UUID, old_password: str, new_password: str
    ) -> None:
        """Swap the password hash. The current session stays valid."""
        if _blank(old_password, new_password):
            raise ApiError(ErrorKind.VALIDATION, "Old and new password are required")

        user = await self.users.get_by_id(user_id)
        if user is None:
            raise ApiError(ErrorKind.NOT_FOUND, "User not found")

        if not await verify_password_async(old_password, user.password_hash):
            raise ApiError(ErrorKind.INVALID_CREDENTIALS, "Invalid old password")

        new_hash = await hash_password_async(new_password, self.bcrypt_rounds)
        try:
            await self.users.set_password_hash(user_id, new_hash)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("auth.password_change_failed", user_id=str(user_id), error=str(e))
            raise ApiError(ErrorKind.INTERNAL, "Something went wrong while changing password")

        logger.info("auth.password_changed", user_id=str(user_id))
