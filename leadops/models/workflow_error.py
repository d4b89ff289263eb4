"""Workflow error log model module (append-only)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from leadops.models.base import Base, utcnow


class WorkflowError(Base):
    __tablename__ = "workflow_errors"
    __table_args__ = (
        Index("idx_workflow_errors_workflow_occurred", "workflow_name", "occurred_at"),
        Index("idx_workflow_errors_lead", "lead_id"),
        Index("idx_workflow_errors_severity", "severity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    execution_id: Mapped[int | None] = mapped_column(ForeignKey("workflow_executions.id", ondelete="CASCADE"))
    workflow_name: Mapped[str] = mapped_column(String(255), nullable=False)
    node_name: Mapped[str] = mapped_column(String(255), nullable=False)
    error_type: Mapped[str] = mapped_column(String(120), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    severity: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    lead_id: Mapped[int | None] = mapped_column(Integer)
    lead_source: Mapped[str | None] = mapped_column(String(20))
    lead_name: Mapped[str | None] = mapped_column(String(255))
    lead_company: Mapped[str | None] = mapped_column(String(255))
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
