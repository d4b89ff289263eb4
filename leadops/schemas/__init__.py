"""Pydantic schema package for API contracts."""

from leadops.schemas.common import APIEnvelope, ErrorEnvelope, Pagination, error_body, ok
from leadops.schemas.retry import RetryRequestBody
from leadops.schemas.sync import SyncCheckRequest

__all__ = [
    "APIEnvelope",
    "ErrorEnvelope",
    "Pagination",
    "RetryRequestBody",
    "SyncCheckRequest",
    "error_body",
    "ok",
]
