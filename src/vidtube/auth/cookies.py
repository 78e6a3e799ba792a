"""Session cookies.

Learn: Both tokens are also delivered as httpOnly cookies so a browser
client never has to touch them from JavaScript. ``secure`` is on unless
explicitly disabled (local HTTP development).
"""

from fastapi import Response

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def set_session_cookies(
    response: Response, access_token: str, refresh_token: str, secure: bool = True
) -> None:
    response.set_cookie(ACCESS_COOKIE, access_token, httponly=True, secure=secure)
    response.set_cookie(REFRESH_COOKIE, refresh_token, httponly=True, secure=secure)


def clear_session_cookies(response: Response, secure: bool = True) -> None:
    response.delete_cookie(ACCESS_COOKIE, httponly=True, secure=secure)
    response.delete_cookie(REFRESH_COOKIE, httponly=True, secure=secure)
