"""
StockLedger -- quantity ledger that never goes negative.

Responsibility:
    Registers stock items, records IN/OUT movements against them, and
    answers availability questions.  Every quantity change is appended to
    the item's movement history.

Architecture position:
    Kernel > Services -- imperative shell.  Called directly by use cases and
    by WorkflowCoordinator when an approved budget consumes stock.  All
    repository calls go through RetryPolicy.

Invariants enforced:
    - ``current_stock >= 0`` at all times.  The in-memory check on the
      loaded snapshot is advisory; the repository's conditional UPDATE is
      authoritative, so concurrent decrements cannot oversell.
    - ``current_stock`` equals the signed sum of the item's movements.
      Items start at zero and any opening quantity is an IN movement.
    - Quantities are positive integers.

Failure modes:
    - InvalidQuantityError: quantity is not a positive integer.
    - InsufficientStockError: an OUT movement exceeds ``current_stock``,
      either on the loaded snapshot or at write time.  A rejected movement
      changes nothing.
    - EntityNotFoundError: unknown stock item id.
    - DuplicateSkuError: registering an SKU that already exists.
    - RetryableError: storage kept failing.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.ports import StockRepository
from workshop_kernel.domain.stock import (
    MovementType,
    StockAvailability,
    StockItem,
    StockMovement,
)
from workshop_kernel.exceptions import (
    DuplicateSkuError,
    EntityNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
)
from workshop_kernel.logging_config import LogContext, get_logger
from workshop_kernel.services.retry_service import RetryPolicy

logger = get_logger("services.stock_ledger")

STOCK_ITEM_KIND = "stock_item"
OPENING_BALANCE_REASON = "Initial stock"


def _check_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


class StockLedger:
    """
    Stock quantity ledger.

    Contract:
        ``record_movement`` returns the appended StockMovement;
        ``decrease``/``increase`` return the updated StockItem snapshot.

    Guarantees:
        - A movement either updates the quantity AND appends its history
          row, or does neither.
        - Items that drop below ``min_stock_level`` are reported with a
          ``stock_below_minimum`` warning log.

    Non-goals:
        - Does NOT reserve stock for pending budgets.
        - Does NOT commit; the caller owns the transaction.
    """

    def __init__(
        self,
        repository: StockRepository,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._retry = retry_policy or RetryPolicy()
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(self, stock_item_id: UUID) -> StockItem:
        """Load a stock item.

        Raises:
            EntityNotFoundError: If no such item exists.
        """
        item = self._retry.with_retry(lambda: self._repository.load(stock_item_id))
        if item is None:
            raise EntityNotFoundError(STOCK_ITEM_KIND, str(stock_item_id))
        return item

    def check_availability(self, stock_item_id: UUID, quantity: int) -> StockAvailability:
        """Can ``quantity`` units be taken right now?  Changes nothing."""
        _check_quantity(quantity)
        return self.get_item(stock_item_id).check_availability(quantity)

    def movements(self, stock_item_id: UUID) -> list[StockMovement]:
        """The item's movement history, oldest first."""
        self.get_item(stock_item_id)
        return self._retry.with_retry(
            lambda: self._repository.list_movements(stock_item_id)
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register_item(
        self,
        sku: str,
        name: str,
        initial_stock: int = 0,
        min_stock_level: int = 0,
        unit_cost: Decimal = Decimal("0"),
        unit_sale_price: Decimal = Decimal("0"),
        description: str | None = None,
        supplier: str | None = None,
    ) -> StockItem:
        """Create a stock item; a positive ``initial_stock`` is booked as an IN movement.

        Raises:
            DuplicateSkuError: If ``sku`` is taken.
            InvalidQuantityError: If ``initial_stock`` is negative or not an int.
        """
        if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or initial_stock < 0:
            raise InvalidQuantityError(initial_stock)

        existing = self._retry.with_retry(lambda: self._repository.find_by_sku(sku))
        if existing is not None:
            raise DuplicateSkuError(sku)

        now = self._clock.now()
        item = StockItem(
            sku=sku,
            name=name,
            current_stock=0,
            min_stock_level=min_stock_level,
            unit_cost=Decimal(unit_cost),
            unit_sale_price=Decimal(unit_sale_price),
            description=description,
            supplier=supplier,
            created_at=now,
            updated_at=now,
        )
        item = self._retry.with_retry(lambda: self._repository.add(item))
        logger.info(
            "stock_item_registered",
            extra={"stock_item_id": str(item.id), "sku": sku, "initial_stock": initial_stock},
        )

        if initial_stock > 0:
            _, item = self._apply(item.id, MovementType.IN, initial_stock, OPENING_BALANCE_REASON)
        return item

    def record_movement(
        self,
        stock_item_id: UUID,
        movement_type: MovementType,
        quantity: int,
        reason: str | None = None,
    ) -> StockMovement:
        """Apply one IN or OUT movement and return it.

        Raises:
            InvalidQuantityError: If ``quantity`` is not a positive integer.
            InsufficientStockError: If an OUT movement exceeds stock.
            EntityNotFoundError: If the item does not exist.
        """
        movement, _ = self._apply(stock_item_id, MovementType(movement_type), quantity, reason)
        return movement

    def decrease(self, stock_item_id: UUID, quantity: int, reason: str | None = None) -> StockItem:
        """Take ``quantity`` units out of stock; returns the updated item."""
        _, item = self._apply(stock_item_id, MovementType.OUT, quantity, reason)
        return item

    def increase(self, stock_item_id: UUID, quantity: int, reason: str | None = None) -> StockItem:
        """Put ``quantity`` units into stock; returns the updated item."""
        _, item = self._apply(stock_item_id, MovementType.IN, quantity, reason)
        return item

    def _apply(
        self,
        stock_item_id: UUID,
        movement_type: MovementType,
        quantity: int,
        reason: str | None,
    ) -> tuple[StockMovement, StockItem]:
        _check_quantity(quantity)
        with LogContext.bind(stock_item_id=stock_item_id):
            item = self.get_item(stock_item_id)
            # Advisory; the conditional update below is what actually guards
            item.validate_movement(movement_type, quantity)

            movement = StockMovement(
                stock_item_id=stock_item_id,
                movement_type=movement_type,
                quantity=quantity,
                reason=reason,
                occurred_at=self._clock.now(),
            )
            updated = self._retry.with_retry(
                lambda: self._repository.apply_movement(movement)
            )
            if updated is None:
                current = self.get_item(stock_item_id)
                logger.warning(
                    "stock_write_guard_rejected",
                    extra={
                        "available": current.current_stock,
                        "requested": quantity,
                        "snapshot_stock": item.current_stock,
                    },
                )
                raise InsufficientStockError(
                    str(stock_item_id),
                    available=current.current_stock,
                    requested=quantity,
                )

            logger.info(
                "stock_movement_recorded",
                extra={
                    "movement_id": str(movement.id),
                    "movement_type": movement_type.value,
                    "quantity": quantity,
                    "current_stock": updated.current_stock,
                    "reason": reason,
                },
            )
            if updated.is_below_minimum_stock():
                logger.warning(
                    "stock_below_minimum",
                    extra={
                        "current_stock": updated.current_stock,
                        "min_stock_level": updated.min_stock_level,
                        "deficit": updated.stock_deficit,
                    },
                )
            return movement, updated
