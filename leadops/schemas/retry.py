"""Retry request schema module."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RetryRequestBody(BaseModel):
    """Raw retry payload; field checks live in the orchestrator so every
    rejection carries the same reason and offending ids."""

    model_config = ConfigDict(populate_by_name=True)

    lead_ids: Any = Field(default=None, alias="leadIds")
    source: Any = None
    workflow_name: Any = Field(default=None, alias="workflowName")
    retry_type: Any = Field(default="full", alias="retryType")
