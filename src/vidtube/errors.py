"""Error taxonomy shared by services and the HTTP boundary.

Learn: Services never build HTTP responses. They raise one tagged error
type, ApiError, whose ``kind`` decides the status code. The exception
handlers in vidtube.main are the only place that turns an ApiError into
the JSON error envelope:

    {"statusCode": 401, "data": null, "message": "...",
     "success": false, "errors": []}
"""

import enum
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    """Every failure a service can report, each with a fixed HTTP status."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"
    TOKEN_REUSE_OR_EXPIRED = "token_reuse_or_expired"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS[self]


_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.TOKEN_REUSE_OR_EXPIRED: 401,
    ErrorKind.INTERNAL: 500,
}

_DEFAULT_MESSAGES = {
    ErrorKind.VALIDATION: "Invalid request",
    ErrorKind.CONFLICT: "Resource already exists",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.FORBIDDEN: "Forbidden",
    ErrorKind.INVALID_CREDENTIALS: "Invalid user credentials",
    ErrorKind.UNAUTHENTICATED: "Unauthorized request",
    ErrorKind.INVALID_TOKEN: "Invalid access token",
    ErrorKind.TOKEN_REUSE_OR_EXPIRED: "Refresh token is expired or used",
    ErrorKind.INTERNAL: "Something went wrong",
}

# Kinds that answer with a WWW-Authenticate challenge
_AUTH_KINDS = {
    ErrorKind.UNAUTHENTICATED,
    ErrorKind.INVALID_TOKEN,
    ErrorKind.TOKEN_REUSE_OR_EXPIRED,
}


class ApiError(Exception):
    """A classified failure, carried unchanged up to the HTTP boundary."""

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        errors: Optional[list[Any]] = None,
    ):
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        self.errors = errors or []
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def headers(self) -> Optional[dict[str, str]]:
        if self.kind in _AUTH_KINDS:
            return {"WWW-Authenticate": "Bearer"}
        return None

    def to_envelope(self) -> dict[str, Any]:
        return error_envelope(self.status_code, self.message, self.errors)

    def __repr__(self) -> str:
        return f"ApiError({self.kind.value!r}, {self.message!r})"


def error_envelope(
    status_code: int, message: str, errors: Optional[list[Any]] = None
) -> dict[str, Any]:
    """Build the JSON body every error response shares."""
    return {
        "statusCode": status_code,
        "data": None,
        "message": message,
        "success": False,
        "errors": errors or [],
    }
