"""Comment API routes.

Learn: All comment routes need an identity — listing uses it for the
``isLiked`` flag, writes use it for ownership checks. The router is
mounted with get_current_user as a router-level dependency; handlers that
need the identity itself ask for it again (FastAPI caches the result per
request, so the token is verified once).
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.auth.dependencies import get_current_user
from vidtube.db.engine import get_db
from vidtube.schemas.comment import CommentCreate, CommentPage, CommentRead, CommentUpdate
from vidtube.schemas.common import ApiResponse, Empty
from vidtube.services.comment_service import MAX_PAGE_SIZE, CommentService
from vidtube.services.user_service import CurrentUser

router = APIRouter(prefix="/comments")


def _svc(db: AsyncSession = Depends(get_db)) -> CommentService:
    return CommentService(db)


@router.get("/{video_id}", response_model=ApiResponse[CommentPage])
async def list_comments(
    video_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    user: CurrentUser = Depends(get_current_user),
    svc: CommentService = Depends(_svc),
):
    result = await svc.list_video_comments(video_id, viewer_id=user.id, page=page, limit=limit)
    return ApiResponse.of(200, CommentPage.model_validate(result), "Comments fetched successfully")


@router.post("/{video_id}", response_model=ApiResponse[CommentRead], status_code=201)
async def add_comment(
    video_id: uuid.UUID,
    body: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    svc: CommentService = Depends(_svc),
):
    comment = await svc.add_comment(video_id, owner_id=user.id, content=body.content)
    return ApiResponse.of(201, CommentRead.model_validate(comment), "Comment added successfully")


@router.patch("/c/{comment_id}", response_model=ApiResponse[CommentRead])
async def update_comment(
    comment_id: uuid.UUID,
    body: CommentUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: CommentService = Depends(_svc),
):
    comment = await svc.update_comment(comment_id, user_id=user.id, content=body.content)
    return ApiResponse.of(200, CommentRead.model_validate(comment), "Comment updated successfully")


@router.delete("/c/{comment_id}", response_model=ApiResponse[Empty])
async def delete_comment(
    comment_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    svc: CommentService = Depends(_svc),
):
    await svc.delete_comment(comment_id, user_id=user.id)
    return ApiResponse.of(200, Empty(), "Comment deleted successfully")
