"""Comment service — paginated listing and owner-only edits.

Learn: The listing is one query per page: each comment row is joined to
its owner, and the like count plus "did the viewer like this" flag are
correlated subqueries. A second COUNT query sizes the page metadata.
"""

import math
import uuid

import structlog
from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.db.models import Comment, Like, User, Video
from vidtube.errors import ApiError, ErrorKind

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100


class CommentService:
    """Business logic for video comments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _require_video(self, video_id: uuid.UUID) -> Video:
        video = await self.db.get(Video, video_id)
        if video is None:
            raise ApiError(ErrorKind.NOT_FOUND, "Video not found")
        return video

    async def _require_own_comment(
        self, comment_id: uuid.UUID, user_id: uuid.UUID, action: str
    ) -> Comment:
        comment = await self.db.get(Comment, comment_id)
        if comment is None:
            raise ApiError(ErrorKind.NOT_FOUND, "Comment not found")
        if comment.owner_id != user_id:
            raise ApiError(
                ErrorKind.FORBIDDEN, f"Only comment owner can {action} their comment"
            )
        return comment

    # ─── Read ───────────────────────────────────────────

    async def list_video_comments(
        self,
        video_id: uuid.UUID,
        viewer_id: uuid.UUID | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        """One page of a video's comments, newest first."""
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ApiError(
                ErrorKind.VALIDATION,
                f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}",
            )
        await self._require_video(video_id)

        total = (
            await self.db.execute(
                select(func.count(Comment.id)).where(Comment.video_id == video_id)
            )
        ).scalar_one()

        likes_count = (
            select(func.count(Like.id))
            .where(Like.comment_id == Comment.id)
            .scalar_subquery()
        )
        is_liked = exists().where(
            Like.comment_id == Comment.id, Like.liked_by_id == viewer_id
        )

        result = await self.db.execute(
            select(
                Comment.id,
                Comment.content,
                Comment.created_at,
                likes_count.label("likes_count"),
                is_liked.label("is_liked"),
                User.username,
                User.full_name,
                User.avatar,
            )
            .join(User, User.id == Comment.owner_id)
            .where(Comment.video_id == video_id)
            .order_by(Comment.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        docs = [
            {
                "id": row.id,
                "content": row.content,
                "created_at": row.created_at,
                "likes_count": row.likes_count,
                "is_liked": bool(row.is_liked),
                "owner": {
                    "username": row.username,
                    "full_name": row.full_name,
                    "avatar": row.avatar,
                },
            }
            for row in result.all()
        ]

        total_pages = max(1, math.ceil(total / limit))
        return {
            "docs": docs,
            "total_docs": total,
            "limit": limit,
            "page": page,
            "total_pages": total_pages,
            "has_prev_page": page > 1,
            "has_next_page": page < total_pages,
            "prev_page": min(page - 1, total_pages) if page > 1 else None,
            "next_page": page + 1 if page < total_pages else None,
        }

    # ─── Write ──────────────────────────────────────────

    async def add_comment(
        self, video_id: uuid.UUID, owner_id: uuid.UUID, content: str
    ) -> Comment:
        if not content or not content.strip():
            raise ApiError(ErrorKind.VALIDATION, "Content is required")
        await self._require_video(video_id)

        comment = Comment(content=content.strip(), video_id=video_id, owner_id=owner_id)
        self.db.add(comment)
        await self.db.commit()
        logger.info("comment.added", comment_id=str(comment.id), video_id=str(video_id))
        return comment

    async def update_comment(
        self, comment_id: uuid.UUID, user_id: uuid.UUID, content: str
    ) -> Comment:
        if not content or not content.strip():
            raise ApiError(ErrorKind.VALIDATION, "Content is required")

        comment = await self._require_own_comment(comment_id, user_id, "update")
        comment.content = content.strip()
        await self.db.commit()
        await self.db.refresh(comment)
        return comment

    async def delete_comment(self, comment_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Delete a comment and every like attached to it."""
        comment = await self._require_own_comment(comment_id, user_id, "delete")
        await self.db.execute(delete(Like).where(Like.comment_id == comment_id))
        await self.db.delete(comment)
        await self.db.commit()
        logger.info("comment.deleted", comment_id=str(comment_id))
