"""Canonical lead status derivation.

Every view that reports a lead's lifecycle state (list, detail, dashboard,
retry validation) goes through ``derive_overall_status`` so the same lead can
never show contradictory states on different screens.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from leadops.core.enums import PIPELINE_ORDER, OverallStatus, Stage, StageStatus
from leadops.models.base import as_utc, utcnow

DEFAULT_RECENT_ERROR_WINDOW = timedelta(minutes=60)

# In-progress context is surfaced from the furthest stage back to the first.
_ACTIVE_STAGE_ORDER = (Stage.DATABASE_UPDATE, Stage.OUTREACH, Stage.RESEARCH)


def _coerce(value: Any) -> StageStatus:
    if isinstance(value, StageStatus):
        return value
    try:
        return StageStatus(value)
    except ValueError:
        return StageStatus.PENDING


@dataclass(frozen=True)
class StageStatuses:
    """The three per-stage statuses of one lead; absent values read as pending."""

    research: StageStatus = StageStatus.PENDING
    outreach: StageStatus = StageStatus.PENDING
    database_update: StageStatus = StageStatus.PENDING

    @classmethod
    def of(
        cls,
        research: Any = None,
        outreach: Any = None,
        database_update: Any = None,
    ) -> "StageStatuses":
        return cls(
            research=_coerce(research),
            outreach=_coerce(outreach),
            database_update=_coerce(database_update),
        )

    @classmethod
    def from_row(cls, row: Any) -> "StageStatuses | None":
        """Build from any object exposing ``<stage>_status`` attributes."""
        if row is None:
            return None
        return cls.of(
            research=getattr(row, "research_status", None),
            outreach=getattr(row, "outreach_status", None),
            database_update=getattr(row, "database_update_status", None),
        )

    def get(self, stage: Stage) -> StageStatus:
        return getattr(self, stage.value)

    def as_dict(self) -> dict[str, str]:
        return {stage.value: self.get(stage).value for stage in PIPELINE_ORDER}


def has_recent_error(
    error_times: Iterable[datetime | None],
    now: datetime | None = None,
    window: timedelta = DEFAULT_RECENT_ERROR_WINDOW,
) -> bool:
    cutoff = (as_utc(now) or utcnow()) - window
    return any(ts is not None and as_utc(ts) > cutoff for ts in error_times)


def derive_overall_status(
    stages: StageStatuses | None,
    recent_errors: Iterable[datetime | None] = (),
    now: datetime | None = None,
    window: timedelta = DEFAULT_RECENT_ERROR_WINDOW,
) -> OverallStatus:
    """Map a lead's stage statuses and error timestamps to one lifecycle status.

    Precedence, first match wins:

    1. no processing record -> ``not_started``
    2. an error inside ``window`` -> ``failed`` (even over a completed lead)
    3. database update completed -> ``completed``
    4. any stage failed -> ``failed``
    5. any stage in progress -> ``processing``
    6. otherwise -> ``pending``
    """
    if stages is None:
        return OverallStatus.NOT_STARTED
    if has_recent_error(recent_errors, now=now, window=window):
        return OverallStatus.FAILED
    if stages.database_update is StageStatus.COMPLETED:
        return OverallStatus.COMPLETED
    if any(stages.get(stage) is StageStatus.FAILED for stage in PIPELINE_ORDER):
        return OverallStatus.FAILED
    if active_stage(stages) is not None:
        return OverallStatus.PROCESSING
    return OverallStatus.PENDING


def active_stage(stages: StageStatuses | None) -> Stage | None:
    """Return the in-progress stage shown as context in detail views."""
    if stages is None:
        return None
    for stage in _ACTIVE_STAGE_ORDER:
        if stages.get(stage) is StageStatus.IN_PROGRESS:
            return stage
    return None


def failed_stage(stages: StageStatuses | None) -> Stage | None:
    """Return the first failed stage in pipeline order."""
    if stages is None:
        return None
    for stage in PIPELINE_ORDER:
        if stages.get(stage) is StageStatus.FAILED:
            return stage
    return None


def stage_duration_seconds(started_at: datetime | None, completed_at: datetime | None) -> int | None:
    if started_at is None or completed_at is None:
        return None
    delta = (as_utc(completed_at) - as_utc(started_at)).total_seconds()
    if delta < 0:
        return None
    return round(delta)
