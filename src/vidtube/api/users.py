"""User API — registration, sessions, account and channel routes.

Learn: Routes for the account lifecycle under /users:
- POST  /register        → create a new account
- POST  /login           → username/email + password → token pair + cookies
- POST  /logout          → forget the stored refresh token, clear cookies
- POST  /refresh-token   → refresh token (cookie or body) → rotated pair
- POST  /change-password → old + new password
- GET   /current-user    → the authenticated user
- PATCH /update-account, /avatar, /cover-image → profile edits
- GET   /c/{username}    → channel profile with subscriber counts
- GET   /history         → watch history

Handlers only translate HTTP ↔ service calls. Every failure is an
ApiError raised by the service and rendered by the app's handlers.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.auth.cookies import (
    REFRESH_COOKIE,
    clear_session_cookies,
    set_session_cookies,
)
from vidtube.auth.dependencies import get_current_user, get_settings, get_token_issuer
from vidtube.auth.jwt import TokenIssuer
from vidtube.config import Settings
from vidtube.db.engine import get_db
from vidtube.schemas.common import ApiResponse, Empty
from vidtube.schemas.user import (
    AvatarUpdate,
    ChangePasswordRequest,
    ChannelProfile,
    CoverImageUpdate,
    LoginData,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UpdateAccountRequest,
    UserRead,
    WatchedVideo,
)
from vidtube.services.auth_service import AuthService
from vidtube.services.user_service import CurrentUser, UserService

router = APIRouter(prefix="/users")


def _auth(
    db: AsyncSession = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, tokens, bcrypt_rounds=settings.bcrypt_rounds)


def _users(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=ApiResponse[UserRead], status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_auth)):
    """Create a new user account."""
    user = await svc.register(
        full_name=body.full_name,
        email=body.email,
        username=body.username,
        password=body.password,
        avatar=body.avatar,
        cover_image=body.cover_image,
    )
    return ApiResponse.of(201, UserRead.model_validate(user), "User registered successfully")


# ─── Login / logout ─────────────────────────────────────


@router.post("/login", response_model=ApiResponse[LoginData])
async def login(
    body: LoginRequest,
    response: Response,
    svc: AuthService = Depends(_auth),
    settings: Settings = Depends(get_settings),
):
    """Login with username or email → JWT tokens (body and cookies)."""
    user, session = await svc.login(
        password=body.password, username=body.username, email=body.email
    )
    set_session_cookies(
        response, session.access_token, session.refresh_token, secure=settings.cookie_secure
    )
    data = LoginData(
        user=UserRead.model_validate(user),
        access_token=session.access_token,
        refresh_token=session.refresh_token,
    )
    return ApiResponse.of(200, data, "User logged in successfully")


@router.post("/logout", response_model=ApiResponse[Empty])
async def logout(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    svc: AuthService = Depends(_auth),
    settings: Settings = Depends(get_settings),
):
    await svc.logout(user.id)
    clear_session_cookies(response, secure=settings.cookie_secure)
    return ApiResponse.of(200, Empty(), "User logged out")


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
async def refresh_token(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    svc: AuthService = Depends(_auth),
    settings: Settings = Depends(get_settings),
):
    """Exchange a refresh token for a new pair. The old token dies."""
    incoming = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    session = await svc.refresh(incoming)
    set_session_cookies(
        response, session.access_token, session.refresh_token, secure=settings.cookie_secure
    )
    data = TokenPair(
        access_token=session.access_token, refresh_token=session.refresh_token
    )
    return ApiResponse.of(200, data, "Access token refreshed")


# ─── Account ────────────────────────────────────────────


@router.post("/change-password", response_model=ApiResponse[Empty])
async def change_password(
    body: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    svc: AuthService = Depends(_auth),
):
    await svc.change_password(user.id, body.old_password, body.new_password)
    return ApiResponse.of(200, Empty(), "Password changed successfully")


@router.get("/current-user", response_model=ApiResponse[UserRead])
async def current_user(user: CurrentUser = Depends(get_current_user)):
    return ApiResponse.of(200, UserRead.model_validate(user), "Current user fetched successfully")


@router.patch("/update-account", response_model=ApiResponse[UserRead])
async def update_account(
    body: UpdateAccountRequest,
    user: CurrentUser = Depends(get_current_user),
    svc: UserService = Depends(_users),
):
    updated = await svc.update_account(user.id, body.full_name, body.email)
    return ApiResponse.of(
        200, UserRead.model_validate(updated), "Account details updated successfully"
    )


@router.patch("/avatar", response_model=ApiResponse[UserRead])
async def update_avatar(
    body: AvatarUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: UserService = Depends(_users),
):
    updated = await svc.update_avatar(user.id, body.avatar)
    return ApiResponse.of(200, UserRead.model_validate(updated), "Avatar updated successfully")


@router.patch("/cover-image", response_model=ApiResponse[UserRead])
async def update_cover_image(
    body: CoverImageUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: UserService = Depends(_users),
):
    updated = await svc.update_cover_image(user.id, body.cover_image)
    return ApiResponse.of(
        200, UserRead.model_validate(updated), "Cover image updated successfully"
    )


# ─── Channel & history ──────────────────────────────────


@router.get("/c/{username}", response_model=ApiResponse[ChannelProfile])
async def channel_profile(
    username: str,
    user: CurrentUser = Depends(get_current_user),
    svc: UserService = Depends(_users),
):
    profile = await svc.get_channel_profile(username, viewer_id=user.id)
    return ApiResponse.of(
        200, ChannelProfile.model_validate(profile), "User channel fetched successfully"
    )


@router.get("/history", response_model=ApiResponse[list[WatchedVideo]])
async def watch_history(
    user: CurrentUser = Depends(get_current_user),
    svc: UserService = Depends(_users),
):
    history = await svc.get_watch_history(user.id)
    return ApiResponse.of(
        200,
        [WatchedVideo.model_validate(item) for item in history],
        "Watch history fetched successfully",
    )
