"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the request. The dependency is a pure
gate: it never refreshes or rotates anything, and it either returns a
fully loaded CurrentUser or short-circuits the request with a 401.

Token source policy:
1. ``Authorization: Bearer <token>`` header (takes precedence)
2. ``accessToken`` cookie (fallback for browser clients)
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.auth.cookies import ACCESS_COOKIE
from vidtube.auth.jwt import TokenError, TokenIssuer, subject_id
from vidtube.config import Settings
from vidtube.db.engine import get_db
from vidtube.errors import ApiError, ErrorKind
from vidtube.services.user_service import CurrentUser, UserService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.tokens


def extract_access_token(request: Request) -> Optional[str]:
    """Bearer header first, then the access-token cookie."""
    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return request.cookies.get(ACCESS_COOKIE) or None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> CurrentUser:
    """Resolve the request's access token to a user (required — 401 otherwise)."""
    token = extract_access_token(request)
    if not token:
        raise ApiError(ErrorKind.UNAUTHENTICATED, "Unauthorized request")

    try:
        payload = tokens.verify_access_token(token)
    except TokenError as e:
        raise ApiError(ErrorKind.INVALID_TOKEN, str(e))

    # User may have been deleted after the token was issued
    user = await UserService(db).get_identity(subject_id(payload))
    if user is None:
        raise ApiError(ErrorKind.INVALID_TOKEN, "Invalid access token")

    return user
