"""Delivery-platform sync reconciliation.

Sync state is read from the flags the delivery workflows materialize on the
lead row; live platform APIs are never consulted here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from leadops.core.enums import SOURCE_PLATFORM, DeliveryPlatform, LeadSource
from leadops.models import Lead
from leadops.models.base import isoformat
from leadops.services.base_service import BaseService

logger = logging.getLogger(__name__)

SYNC_LOOKUP_FAILED = "Failed to check sync status"


@dataclass
class PlatformSync:
    synced: bool = False
    synced_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"synced": self.synced, "synced_at": isoformat(self.synced_at)}


@dataclass
class SyncStatus:
    """Derived per-email sync view; never persisted."""

    instantly: PlatformSync = field(default_factory=PlatformSync)
    heyreach: PlatformSync = field(default_factory=PlatformSync)
    lead_source: str | None = None
    error: str | None = None

    @property
    def overall_synced(self) -> bool:
        return self.instantly.synced or self.heyreach.synced

    def to_dict(self) -> dict[str, Any]:
        return {
            "instantly": self.instantly.to_dict(),
            "heyreach": self.heyreach.to_dict(),
            "overallSynced": self.overall_synced,
            "lead_source": self.lead_source,
            "error": self.error,
        }


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def platform_sync_for(lead: Lead) -> tuple[DeliveryPlatform, PlatformSync]:
    """Read only the flag of the platform paired with the lead's source."""
    platform = SOURCE_PLATFORM[LeadSource(lead.lead_source)]
    if platform is DeliveryPlatform.INSTANTLY:
        return platform, PlatformSync(bool(lead.instantly_synced), lead.instantly_synced_at)
    return platform, PlatformSync(bool(lead.heyreach_synced), lead.heyreach_synced_at)


def _has_foreign_flag(lead: Lead) -> bool:
    if lead.lead_source == LeadSource.APOLLO.value:
        return bool(lead.heyreach_synced)
    return bool(lead.instantly_synced)


class SyncReconciliationService(BaseService):
    """Merge per-platform delivery flags into one sync view per lead email."""

    def check_sync(self, emails: Iterable[str]) -> dict[str, SyncStatus]:
        requested = [email for email in emails if isinstance(email, str)]
        result = {email: SyncStatus() for email in requested}
        keys = {_normalize_email(email) for email in requested if email.strip()}
        if not keys:
            return result

        try:
            rows = self.db.scalars(select(Lead).where(func.lower(Lead.email).in_(keys))).all()
        except SQLAlchemyError as exc:
            self.rollback()
            logger.error(
                "sync.lookup.failed",
                extra={"event": "sync.lookup.failed", "email_count": len(keys), "error": str(exc)},
            )
            return {email: SyncStatus(error=SYNC_LOOKUP_FAILED) for email in requested}

        by_email: dict[str, SyncStatus] = {}
        ignored: list[int] = []
        for lead in rows:
            status = by_email.setdefault(_normalize_email(lead.email), SyncStatus())
            platform, sync = platform_sync_for(lead)
            if platform is DeliveryPlatform.INSTANTLY:
                status.instantly = sync
            else:
                status.heyreach = sync
            status.lead_source = lead.lead_source if status.lead_source is None else status.lead_source
            if _has_foreign_flag(lead):
                ignored.append(lead.id)

        if ignored:
            logger.warning(
                "sync.cross_platform_flag_ignored",
                extra={"event": "sync.cross_platform_flag_ignored", "lead_ids": ignored},
            )

        for email in requested:
            status = by_email.get(_normalize_email(email))
            if status is not None:
                result[email] = status
        return result

    def synced_lead_ids(self, lead_ids: Iterable[int], source: LeadSource | str) -> list[int]:
        """Ids among ``lead_ids`` already delivered on the source's own platform."""
        ids = list(lead_ids)
        if not ids:
            return []
        source_value = LeadSource(source).value
        rows = self.db.scalars(
            select(Lead).where(Lead.lead_source == source_value, Lead.id.in_(ids))
        ).all()
        synced = {lead.id for lead in rows if platform_sync_for(lead)[1].synced}
        return [lead_id for lead_id in ids if lead_id in synced]
