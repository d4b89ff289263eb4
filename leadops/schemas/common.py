"""Common schema module."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class APIEnvelope(BaseModel):
    success: bool = True
    data: Any = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str
    details: Any = None


class Pagination(BaseModel):
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


def ok(data: Any) -> dict[str, Any]:
    return APIEnvelope(data=data).model_dump()


def error_body(error: str, details: Any = None) -> dict[str, Any]:
    return ErrorEnvelope(error=error, details=details).model_dump(exclude_none=True)
