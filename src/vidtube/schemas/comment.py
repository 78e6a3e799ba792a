"""Pydantic schemas for comments.

Learn: CommentPage mirrors the page shape front-ends already expect from
aggregate pagination (docs + totals + prev/next pointers).
"""

import uuid
from datetime import datetime
from typing import Optional

from vidtube.schemas.common import CamelModel


class CommentCreate(CamelModel):
    content: str = ""


class CommentUpdate(CamelModel):
    content: str = ""


class CommentOwner(CamelModel):
    username: str
    full_name: str
    avatar: str


class CommentRead(CamelModel):
    id: uuid.UUID
    content: str
    video_id: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class CommentListItem(CamelModel):
    id: uuid.UUID
    content: str
    created_at: datetime
    likes_count: int
    is_liked: bool
    owner: CommentOwner


class CommentPage(CamelModel):
    docs: list[CommentListItem]
    total_docs: int
    limit: int
    page: int
    total_pages: int
    has_prev_page: bool
    has_next_page: bool
    prev_page: Optional[int] = None
    next_page: Optional[int] = None
