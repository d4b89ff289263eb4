"""Enums for the LeadOps service.

Values are lowercase strings because they are stored verbatim in the
relational store and echoed back in API payloads.
"""

from __future__ import annotations

import enum


class LeadSource(str, enum.Enum):
    """Upstream channel a lead was produced by."""

    APOLLO = "apollo"
    LINKEDIN = "linkedin"


class DeliveryPlatform(str, enum.Enum):
    """Delivery platform a lead is handed off to."""

    INSTANTLY = "instantly"
    HEYREACH = "heyreach"


class Stage(str, enum.Enum):
    """Pipeline stages in execution order."""

    RESEARCH = "research"
    OUTREACH = "outreach"
    DATABASE_UPDATE = "database_update"


class StageStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class OverallStatus(str, enum.Enum):
    """Canonical lifecycle status reported for a lead."""

    NOT_STARTED = "not_started"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionStatus(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorSeverity(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RetryType(str, enum.Enum):
    FULL = "full"
    FROM_FAILURE = "from_failure"
    RESEARCH_ONLY = "research_only"
    OUTREACH_ONLY = "outreach_only"


class RetryAttemptStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


PIPELINE_ORDER: tuple[Stage, ...] = (Stage.RESEARCH, Stage.OUTREACH, Stage.DATABASE_UPDATE)

# Apollo leads are only ever delivered through Instantly, LinkedIn leads through HeyReach.
SOURCE_PLATFORM: dict[LeadSource, DeliveryPlatform] = {
    LeadSource.APOLLO: DeliveryPlatform.INSTANTLY,
    LeadSource.LINKEDIN: DeliveryPlatform.HEYREACH,
}
