"""Per-lead processing status model module."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadops.models.base import Base, TimestampMixin


class LeadProcessingStatus(Base, TimestampMixin):
    """Source of truth for a lead's stage statuses, one row per (lead_id, lead_source)."""

    __tablename__ = "lead_processing_status"
    __table_args__ = (
        UniqueConstraint("lead_id", "lead_source", name="uq_lead_processing_status_lead"),
        CheckConstraint("lead_source IN ('apollo', 'linkedin')", name="ck_lead_processing_status_source"),
        Index("idx_lead_processing_status_updated", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_id: Mapped[int] = mapped_column(Integer, nullable=False)
    lead_source: Mapped[str] = mapped_column(String(20), nullable=False)
    execution_id: Mapped[int | None] = mapped_column(ForeignKey("workflow_executions.id", ondelete="SET NULL"))

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
    last_error: Mapped[str | None] = mapped_column(Text)
    last_error_node: Mapped[str | None] = mapped_column(String(255))
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processing_time_seconds: Mapped[int | None] = mapped_column(Integer)

    execution = relationship("WorkflowExecution")
