"""
Module: workshop_kernel.models.service_order
Responsibility: ORM persistence for service orders.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status holds a ServiceOrderStatus value; legality of changes is
      decided by the domain transition table, not here.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import TimestampedBase


class ServiceOrderRecord(TimestampedBase):
    """Row mirror of ``workshop_kernel.domain.service_order.ServiceOrder``."""

    __tablename__ = "service_orders"

    __table_args__ = (
        Index("idx_service_order_status", "status"),
        Index("idx_service_order_client", "client_id"),
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    vehicle_id: Mapped[UUID] = mapped_column(nullable=False)
    request_date: Mapped[datetime] = mapped_column(nullable=False)
    delivery_date: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ServiceOrderRecord {self.id} {self.status}>"
