"""
Module: workshop_kernel.models.service_execution
Responsibility: ORM persistence for service executions.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import TimestampedBase


class ServiceExecutionRecord(TimestampedBase):
    """Row mirror of ``workshop_kernel.domain.service_execution.ServiceExecution``."""

    __tablename__ = "service_executions"

    __table_args__ = (
        Index("idx_service_execution_order", "service_order_id"),
        Index("idx_service_execution_status", "status"),
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False)
    service_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_orders.id"),
        nullable=False,
    )
    mechanic_id: Mapped[UUID | None] = mapped_column(nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ServiceExecutionRecord {self.id} {self.status}>"
