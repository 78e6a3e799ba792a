"""User service — the credential store plus profile and history queries.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database.

The refresh-token column is only ever written through three methods:
- set_refresh_token     → unconditional overwrite (login)
- rotate_refresh_token  → compare-and-swap on the old value (refresh)
- clear_refresh_token   → unset (logout)

rotate_refresh_token is a single conditional UPDATE, so two concurrent
refreshes presenting the same token cannot both win: the database applies
one, and the other matches zero rows.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.db.models import Subscription, User, Video, WatchHistoryEntry, utcnow
from vidtube.errors import ApiError, ErrorKind


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated identity of a request — no credential fields."""

    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str]
    created_at: datetime
    updated_at: datetime


# Columns safe to hand to the rest of the app (no hash, no refresh token)
_IDENTITY_COLUMNS = (
    User.id,
    User.username,
    User.email,
    User.full_name,
    User.avatar,
    User.cover_image,
    User.created_at,
    User.updated_at,
)


class UserService:
    """Persistence and queries for users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Lookups ────────────────────────────────────────

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        return await self.db.get(User, user_id, populate_existing=True)

    async def get_identity(self, user_id: uuid.UUID) -> CurrentUser | None:
        """Load a user with the credential fields projected out."""
        result = await self.db.execute(
            select(*_IDENTITY_COLUMNS).where(User.id == user_id)
        )
        row = result.first()
        if row is None:
            return None
        return CurrentUser(**row._asdict())

    async def find_by_login(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> User | None:
        """Find a user by username or email (either may be omitted)."""
        clauses = []
        if username:
            clauses.append(User.username == username.strip().lower())
        if email:
            clauses.append(User.email == email.strip().lower())
        if not clauses:
            return None
        result = await self.db.execute(select(User).where(or_(*clauses)).limit(1))
        return result.scalars().first()

    async def identity_taken(self, username: str, email: str) -> bool:
        return await self.find_by_login(username=username, email=email) is not None

    # ─── Create ─────────────────────────────────────────

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str = "",
        cover_image: Optional[str] = None,
    ) -> User:
        """Insert a user. Takes an already-computed hash, never a password.

        Raises ApiError(CONFLICT) if the unique username/email constraint fires.
        """
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            avatar=avatar,
            cover_image=cover_image or None,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ApiError(
                ErrorKind.CONFLICT, "User with email or username already exists"
            )
        return user

    # ─── Refresh token column ───────────────────────────

    async def set_refresh_token(self, user_id: uuid.UUID, token: str) -> None:
        """Overwrite the stored refresh token (any previous session dies)."""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=token, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def rotate_refresh_token(
        self, user_id: uuid.UUID, expected: str, new: str
    ) -> bool:
        """Replace ``expected`` with ``new`` atomically.

        Returns False when the stored token no longer equals ``expected``
        (already rotated by a concurrent refresh, or logged out).
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token == expected)
            .values(refresh_token=new, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def clear_refresh_token(self, user_id: uuid.UUID) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    # ─── Profile updates ────────────────────────────────

    async def set_password_hash(self, user_id: uuid.UUID, password_hash: str) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def update_account(
        self, user_id: uuid.UUID, full_name: str, email: str
    ) -> CurrentUser:
        if not full_name.strip() or not email.strip():
            raise ApiError(ErrorKind.VALIDATION, "All fields are required")

        email = email.strip().lower()
        clash = await self.db.execute(
            select(User.id).where(User.email == email, User.id != user_id)
        )
        if clash.first() is not None:
            raise ApiError(ErrorKind.CONFLICT, "Email is already in use")

        return await self._update_profile(
            user_id, full_name=full_name.strip(), email=email
        )

    async def update_avatar(self, user_id: uuid.UUID, avatar_url: str) -> CurrentUser:
        if not avatar_url.strip():
            raise ApiError(ErrorKind.VALIDATION, "Avatar URL is missing")
        return await self._update_profile(user_id, avatar=avatar_url.strip())

    async def update_cover_image(
        self, user_id: uuid.UUID, cover_image_url: str
    ) -> CurrentUser:
        if not cover_image_url.strip():
            raise ApiError(ErrorKind.VALIDATION, "Cover image URL is missing")
        return await self._update_profile(user_id, cover_image=cover_image_url.strip())

    async def _update_profile(self, user_id: uuid.UUID, **values) -> CurrentUser:
        try:
            await self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(**values, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ApiError(ErrorKind.CONFLICT, "Email is already in use")

        identity = await self.get_identity(user_id)
        if identity is None:
            raise ApiError(ErrorKind.NOT_FOUND, "User not found")
        return identity

    # ─── Channel profile ────────────────────────────────

    async def get_channel_profile(
        self, username: str, viewer_id: Optional[uuid.UUID] = None
    ) -> dict:
        """Public profile of a channel with subscription counts.

        Learn: Both counts and the viewer's subscription flag are correlated
        subqueries against the same users row, so the whole profile is one
        round trip regardless of how many subscribers a channel has.
        """
        if not username or not username.strip():
            raise ApiError(ErrorKind.VALIDATION, "Username is missing")

        subscribers_count = (
            select(func.count(Subscription.id))
            .where(Subscription.channel_id == User.id)
            .scalar_subquery()
        )
        subscribed_to_count = (
            select(func.count(Subscription.id))
            .where(Subscription.subscriber_id == User.id)
            .scalar_subquery()
        )
        is_subscribed = exists().where(
            Subscription.channel_id == User.id,
            Subscription.subscriber_id == viewer_id,
        )

        result = await self.db.execute(
            select(
                User.id,
                User.full_name,
                User.username,
                User.email,
                User.avatar,
                User.cover_image,
                subscribers_count.label("subscribers_count"),
                subscribed_to_count.label("channels_subscribed_to_count"),
                is_subscribed.label("is_subscribed"),
            ).where(User.username == username.strip().lower())
        )
        row = result.first()
        if row is None:
            raise ApiError(ErrorKind.NOT_FOUND, "Channel does not exist")

        profile = row._asdict()
        profile["is_subscribed"] = bool(profile["is_subscribed"])
        return profile

    # ─── Watch history ──────────────────────────────────

    async def get_watch_history(self, user_id: uuid.UUID) -> list[dict]:
        """Videos the user watched, oldest first, each with its owner."""
        result = await self.db.execute(
            select(
                Video,
                User.full_name.label("owner_full_name"),
                User.username.label("owner_username"),
                User.avatar.label("owner_avatar"),
            )
            .join(WatchHistoryEntry, WatchHistoryEntry.video_id == Video.id)
            .join(User, User.id == Video.owner_id)
            .where(WatchHistoryEntry.user_id == user_id)
            .order_by(WatchHistoryEntry.id)
        )

        history = []
        for video, full_name, username, avatar in result.all():
            history.append(
                {
                    "id": video.id,
                    "video_file": video.video_file,
                    "thumbnail": video.thumbnail,
                    "title": video.title,
                    "description": video.description,
                    "duration": video.duration,
                    "views": video.views,
                    "is_published": video.is_published,
                    "created_at": video.created_at,
                    "owner": {
                        "full_name": full_name,
                        "username": username,
                        "avatar": avatar,
                    },
                }
            )
        return history
