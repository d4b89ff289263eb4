"""Lead model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from leadops.models.base import Base, TimestampMixin


class Lead(Base, TimestampMixin):
    __tablename__ = "leads"
    __table_args__ = (
        UniqueConstraint("lead_source", "email", name="uq_leads_source_email"),
        CheckConstraint("lead_source IN ('apollo', 'linkedin')", name="ck_leads_source"),
        Index("idx_leads_source_processed", "lead_source", "processed"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_source: Mapped[str] = mapped_column(String(20), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(320), index=True)
    company: Mapped[str | None] = mapped_column(String(255))
    title: Mapped[str | None] = mapped_column(String(255))
    niche: Mapped[str | None] = mapped_column(String(120))
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    research_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    research_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    research_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    research_error: Mapped[str | None] = mapped_column(Text)
    outreach_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    outreach_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    outreach_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    outreach_error: Mapped[str | None] = mapped_column(Text)
    database_update_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    database_update_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    database_update_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    database_update_error: Mapped[str | None] = mapped_column(Text)

    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)
    last_error_node: Mapped[str | None] = mapped_column(String(255))

    # Delivery sync flags materialized by the delivery workflows.
    instantly_synced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    instantly_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    heyreach_synced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    heyreach_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
