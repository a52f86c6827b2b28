"""
Stock domain types (``workshop_kernel.domain.stock``).

Responsibility:
    Stock item snapshot, the immutable movement record, and the availability
    answer returned by the ledger.

Architecture position:
    Kernel > Domain -- pure values, zero I/O.

Invariants enforced:
    - ``current_stock`` is a non-negative integer.
    - A movement's quantity is a positive integer; its direction is carried
      by ``movement_type``, never by the sign of ``quantity``.
    - ``current_stock`` equals the signed sum of the item's movements.
      ``StockItem.apply`` checks this in memory; the persistence layer
      re-checks it atomically at write time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from workshop_kernel.exceptions import InsufficientStockError, InvalidQuantityError


class MovementType(str, Enum):
    """Direction of a stock movement."""

    IN = "in"
    OUT = "out"


def _require_positive_int(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


@dataclass(frozen=True)
class StockMovement:
    """One append-only ledger line. Immutable."""

    stock_item_id: UUID
    movement_type: MovementType
    quantity: int
    occurred_at: datetime
    reason: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _require_positive_int(self.quantity)
        object.__setattr__(self, "movement_type", MovementType(self.movement_type))

    @property
    def signed_quantity(self) -> int:
        if self.movement_type == MovementType.IN:
            return self.quantity
        return -self.quantity


@dataclass(frozen=True)
class StockAvailability:
    """Answer to "can I take ``requested_quantity`` right now?"."""

    available: bool
    current_stock: int
    requested_quantity: int


@dataclass(frozen=True)
class StockItem:
    """
    Snapshot of a stock item.

    Snapshots are immutable; ``apply`` returns a new snapshot.  ``version``
    increments with every applied movement and doubles as the optimistic
    concurrency token.
    """

    sku: str
    name: str
    current_stock: int = 0
    min_stock_level: int = 0
    unit_cost: Decimal = Decimal("0")
    unit_sale_price: Decimal = Decimal("0")
    description: str | None = None
    supplier: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not self.sku or not self.sku.strip():
            raise ValueError("Stock item SKU cannot be empty")
        if isinstance(self.current_stock, bool) or not isinstance(self.current_stock, int) or self.current_stock < 0:
            raise ValueError(f"current_stock must be a non-negative integer, got {self.current_stock!r}")
        if isinstance(self.min_stock_level, bool) or not isinstance(self.min_stock_level, int) or self.min_stock_level < 0:
            raise ValueError(f"min_stock_level must be a non-negative integer, got {self.min_stock_level!r}")
        if Decimal(self.unit_cost) < 0 or Decimal(self.unit_sale_price) < 0:
            raise ValueError("Stock item prices cannot be negative")

    def has_stock(self, quantity: int) -> bool:
        return self.current_stock >= quantity

    def is_below_minimum_stock(self) -> bool:
        return self.current_stock < self.min_stock_level

    @property
    def stock_deficit(self) -> int:
        return max(0, self.min_stock_level - self.current_stock)

    def check_availability(self, quantity: int) -> StockAvailability:
        return StockAvailability(
            available=self.has_stock(quantity),
            current_stock=self.current_stock,
            requested_quantity=quantity,
        )

    def validate_movement(self, movement_type: MovementType, quantity: int) -> None:
        """Advisory in-memory check for a prospective movement.

        Raises:
            InvalidQuantityError: If ``quantity`` is not a positive integer.
            InsufficientStockError: If an OUT movement would go negative.
        """
        _require_positive_int(quantity)
        if MovementType(movement_type) == MovementType.OUT and self.current_stock - quantity < 0:
            raise InsufficientStockError(
                str(self.id), available=self.current_stock, requested=quantity
            )

    def apply(self, movement: StockMovement) -> StockItem:
        """Return the snapshot after ``movement``."""
        self.validate_movement(movement.movement_type, movement.quantity)
        return replace(
            self,
            current_stock=self.current_stock + movement.signed_quantity,
            version=self.version + 1,
            updated_at=movement.occurred_at,
        )
