"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter for routers where every route is protected.
The users router mixes open routes (register, login, refresh-token)
with protected ones, so it declares get_current_user per route instead.
"""

from fastapi import APIRouter, Depends

from vidtube.api.comments import router as comments_router
from vidtube.api.health import router as health_router
from vidtube.api.users import router as users_router
from vidtube.auth.dependencies import get_current_user

_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Mixed — per-route auth
api_router.include_router(users_router, tags=["users"])

# Protected routes — require a valid access token
api_router.include_router(comments_router, tags=["comments"], dependencies=_auth)
