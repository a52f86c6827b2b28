"""
Module: workshop_kernel.models.stock
Responsibility: ORM persistence for stock items and the append-only stock
    movement history.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - sku is unique (uq_stock_item_sku).
    - current_stock is never negative (ck_stock_item_non_negative); the
      conditional decrement in SqlStockRepository is the primary guard, the
      CHECK constraint is the backstop.
    - version increments on every applied movement.
    - Movement rows are inserted, never updated or deleted.

Failure modes:
    - IntegrityError on duplicate SKU (surfaced as DuplicateSkuError by the
      ledger before the insert in the common case).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import Base, TimestampedBase


class StockItemRecord(TimestampedBase):
    """Row mirror of ``workshop_kernel.domain.stock.StockItem``."""

    __tablename__ = "stock_items"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_stock_item_sku"),
        CheckConstraint("current_stock >= 0", name="ck_stock_item_non_negative"),
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    unit_sale_price: Mapped[Decimal] = mapped_column(nullable=False)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Optimistic token, bumped by every movement
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<StockItemRecord {self.sku} stock={self.current_stock}>"


class StockMovementRecord(Base):
    """Row mirror of ``workshop_kernel.domain.stock.StockMovement``."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_stock_movement_item", "stock_item_id", "occurred_at"),
        CheckConstraint("quantity > 0", name="ck_stock_movement_positive"),
    )

    stock_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_items.id"),
        nullable=False,
    )
    movement_type: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    # Insertion order for movements sharing a timestamp
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<StockMovementRecord {self.movement_type} {self.quantity}>"
