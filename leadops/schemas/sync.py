"""Sync check schema module."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SyncCheckRequest(BaseModel):
    emails: list[str] = Field(min_length=1, max_length=500)
