"""Retry audit trail model module (append-only)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from leadops.models.base import Base, utcnow


class RetryAttempt(Base):
    __tablename__ = "retry_attempts"
    __table_args__ = (
        Index("idx_retry_attempts_lead", "lead_id", "lead_source"),
        Index("idx_retry_attempts_status", "status", "requested_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lead_id: Mapped[int] = mapped_column(Integer, nullable=False)
    lead_source: Mapped[str] = mapped_column(String(20), nullable=False)
    workflow_name: Mapped[str] = mapped_column(String(255), nullable=False)
    retry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
