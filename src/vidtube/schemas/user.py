"""Pydantic schemas for users, sessions, channels and watch history.

Learn: Request schemas default missing strings to "" instead of failing
validation, so "field missing" and "field blank" take the same path:
the service rejects both with a 400 ValidationError and one message.
Response schemas are "sanitized" — none of them has a password or
refresh-token field, so those can never leak into a response.
"""

import uuid
from datetime import datetime
from typing import Optional

from vidtube.schemas.common import CamelModel


# ─── Requests ───────────────────────────────────────────

class RegisterRequest(CamelModel):
    full_name: str = ""
    email: str = ""
    username: str = ""
    password: str = ""
    avatar: str = ""
    cover_image: Optional[str] = None


class LoginRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = ""


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_password: str = ""
    new_password: str = ""


class UpdateAccountRequest(CamelModel):
    full_name: str = ""
    email: str = ""


class AvatarUpdate(CamelModel):
    avatar: str = ""


class CoverImageUpdate(CamelModel):
    cover_image: str = ""


# ─── Responses ──────────────────────────────────────────

class UserRead(CamelModel):
    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LoginData(CamelModel):
    user: UserRead
    access_token: str
    refresh_token: str


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class ChannelProfile(CamelModel):
    id: uuid.UUID
    full_name: str
    username: str
    email: str
    avatar: str
    cover_image: Optional[str] = None
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class VideoOwner(CamelModel):
    full_name: str
    username: str
    avatar: str


class WatchedVideo(CamelModel):
    id: uuid.UUID
    video_file: str
    thumbnail: str
    title: str
    description: str
    duration: float
    views: int
    is_published: bool
    created_at: datetime
    owner: VideoOwner
