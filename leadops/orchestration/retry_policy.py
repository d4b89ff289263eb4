"""Retry type -> stage reset policy mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from leadops.core.enums import PIPELINE_ORDER, RetryType, Stage, StageStatus


@dataclass(frozen=True)
class ResetPolicy:
    """Which stages a retry re-opens, and whether error bookkeeping is cleared."""

    stages: frozenset[Stage]
    clear_errors: bool = True


_ALL_STAGES = frozenset(PIPELINE_ORDER)

RETRY_POLICIES: dict[RetryType, ResetPolicy] = {
    RetryType.FULL: ResetPolicy(stages=_ALL_STAGES),
    # TODO: reset only the failed stage and its successors once the product owners confirm that intent.
    RetryType.FROM_FAILURE: ResetPolicy(stages=_ALL_STAGES),
    RetryType.RESEARCH_ONLY: ResetPolicy(stages=frozenset({Stage.RESEARCH})),
    RetryType.OUTREACH_ONLY: ResetPolicy(stages=frozenset({Stage.OUTREACH})),
}

_unmapped = set(RetryType) - set(RETRY_POLICIES)
if _unmapped:
    raise RuntimeError(f"Retry types without a reset policy: {sorted(t.value for t in _unmapped)}")


def stage_reset_fields(stage: Stage) -> dict[str, Any]:
    prefix = stage.value
    return {
        f"{prefix}_status": StageStatus.PENDING.value,
        f"{prefix}_started_at": None,
        f"{prefix}_completed_at": None,
        f"{prefix}_error": None,
    }


def get_policy(retry_type: RetryType | str) -> ResetPolicy:
    return RETRY_POLICIES[RetryType(retry_type)]


def reset_fields(retry_type: RetryType | str) -> dict[str, Any]:
    """Column -> value mapping applied to a lead when it is re-queued."""
    policy = get_policy(retry_type)
    fields: dict[str, Any] = {}
    for stage in PIPELINE_ORDER:
        if stage in policy.stages:
            fields.update(stage_reset_fields(stage))
    if policy.clear_errors:
        fields["last_error"] = None
        fields["error_count"] = 0
    return fields
