"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), used for API calls. Never stored.
- Refresh token: long-lived (10 days), used to get a new token pair.
  Stored on the user row; only the stored value is honoured.

The two kinds are signed with different secrets, so verifying a refresh
token as an access token (or the reverse) fails on the signature alone.
Every token carries a random ``jti`` so two tokens minted in the same
second for the same user are still different strings.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import jwt

from vidtube.config import Settings


class TokenError(Exception):
    """Raised when token verification fails."""


class TokenSubject(Protocol):
    """What the issuer needs to know about a user."""

    id: uuid.UUID
    email: str
    username: str
    full_name: str


class TokenIssuer:
    """Mints and verifies access/refresh tokens for one configuration."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            algorithm=settings.jwt_algorithm,
        )

    # ─── Issue ──────────────────────────────────────────

    def issue_access_token(self, user: TokenSubject) -> str:
        """Create a JWT access token carrying the user's public identity."""
        claims = {
            "id": str(user.id),
            "email": user.email,
            "username": user.username,
            "fullName": user.full_name,
        }
        return self._encode(claims, self.access_ttl, self.access_secret)

    def issue_refresh_token(self, user: TokenSubject) -> str:
        """Create a JWT refresh token. Only the user id is embedded."""
        return self._encode({"id": str(user.id)}, self.refresh_ttl, self.refresh_secret)

    def _encode(self, claims: dict[str, Any], ttl: timedelta, secret: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    # ─── Verify ─────────────────────────────────────────

    def verify_access_token(self, token: str) -> dict:
        return self._decode(token, self.access_secret)

    def verify_refresh_token(self, token: str) -> dict:
        return self._decode(token, self.refresh_secret)

    def _decode(self, token: str, secret: str) -> dict:
        """Verify signature + expiry and return the payload.

        Raises TokenError on failure.
        """
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "id"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

        if subject_id(payload) is None:
            raise TokenError("Invalid token: malformed subject id")
        return payload


def subject_id(payload: dict) -> Optional[uuid.UUID]:
    """The user id embedded in a verified payload, or None if unparseable."""
    try:
        return uuid.UUID(str(payload["id"]))
    except (KeyError, ValueError):
        return None
