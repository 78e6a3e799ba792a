"""Shared schema pieces: camelCase wire format and the response envelope.

Learn: Python attributes stay snake_case; the alias generator turns them
into camelCase on the wire (``full_name`` ↔ ``fullName``). Inputs accept
either spelling (populate_by_name), outputs always use the alias.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope: ``{statusCode, data, message, success}``."""

    status_code: int
    data: Optional[T] = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def of(cls, status_code: int, data: Optional[T], message: str = "Success"):
        return cls(
            status_code=status_code,
            data=data,
            message=message,
            success=status_code < 400,
        )


class Empty(CamelModel):
    """``data: {}`` for operations with nothing to return."""
    pass
