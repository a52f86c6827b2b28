"""
Module: workshop_kernel.models.workflow_event
Responsibility: Append-only persistence of published workflow events, written
    by RecordingEventPublisher.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import Base


class WorkflowEventRecord(Base):
    """One published ``WorkflowEvent``.  ``id`` is the event id."""

    __tablename__ = "workflow_events"

    __table_args__ = (
        Index("idx_workflow_event_aggregate", "aggregate_kind", "aggregate_id"),
        Index("idx_workflow_event_type", "event_type"),
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    aggregate_kind: Mapped[str] = mapped_column(String(30), nullable=False)
    aggregate_id: Mapped[UUID] = mapped_column(nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    is_warning: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<WorkflowEventRecord {self.event_type} {self.aggregate_kind}:{self.aggregate_id}>"
