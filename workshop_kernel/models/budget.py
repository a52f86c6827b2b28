"""
Module: workshop_kernel.models.budget
Responsibility: ORM persistence for budgets and their priced lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Budget items belong to exactly one budget (FK, delete-orphan cascade).
    - Item rows are written once; the domain never edits a line in place.

Failure modes:
    - IntegrityError if a budget references a missing service order on a
      backend that enforces foreign keys.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workshop_kernel.db.base import Base, TimestampedBase


class BudgetRecord(TimestampedBase):
    """Row mirror of ``workshop_kernel.domain.budget.Budget``."""

    __tablename__ = "budgets"

    __table_args__ = (
        Index("idx_budget_service_order", "service_order_id"),
        Index("idx_budget_status", "status"),
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False)
    service_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_orders.id"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    validity_period_days: Mapped[int] = mapped_column(Integer, nullable=False)
    sent_date: Mapped[datetime | None] = mapped_column(nullable=True)
    approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_date: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    items: Mapped[list["BudgetItemRecord"]] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BudgetItemRecord.line_seq",
    )

    def __repr__(self) -> str:
        return f"<BudgetRecord {self.id} {self.status}>"


class BudgetItemRecord(Base):
    """Row mirror of ``workshop_kernel.domain.budget.BudgetItem``."""

    __tablename__ = "budget_items"

    __table_args__ = (
        Index("idx_budget_item_budget", "budget_id"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        ForeignKey("budgets.id"),
        nullable=False,
    )
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    stock_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("stock_items.id"),
        nullable=True,
    )
    service_id: Mapped[UUID | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Insertion order within the budget
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    budget: Mapped["BudgetRecord"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<BudgetItemRecord {self.item_type} x{self.quantity}>"
