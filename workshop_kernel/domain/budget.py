"""
Budget lifecycle (``workshop_kernel.domain.budget``).

Responsibility:
    The quote presented to the client for a service order: its items, its
    validity window and its GENERATED -> SENT -> RECEIVED -> APPROVED/REJECTED
    lifecycle.

Architecture position:
    Kernel > Domain -- pure in-memory state machine, zero I/O.

Invariants enforced:
    - Transitions follow ``BUDGET_TRANSITIONS``; misses raise
      InvalidBudgetStatusError.
    - approve/reject are accepted from SENT or RECEIVED only, and never once
      the validity window has elapsed (BudgetExpiredError).
    - ``sent_date``, ``approval_date`` and ``rejection_date`` are set only by
      their transitions.
    - Items are immutable values; ``total_amount`` is always the sum of item
      totals.

Whether an item may be added at all depends on the service order's status;
that rule lives in the WorkflowCoordinator, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.transitions import (
    BudgetStatus,
    EntityKind,
    is_final_state,
    validate_transition,
)
from workshop_kernel.exceptions import BudgetExpiredError, InvalidBudgetStatusError


class BudgetItemType(str, Enum):
    """What a budget line charges for."""

    SERVICE = "service"
    STOCK_ITEM = "stock_item"


@dataclass(frozen=True)
class BudgetItem:
    """A single priced line on a budget. Immutable."""

    budget_id: UUID
    item_type: BudgetItemType
    description: str
    quantity: int
    unit_price: Decimal
    stock_item_id: UUID | None = None
    service_id: UUID | None = None
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError(f"Budget item quantity must be a positive integer, got {self.quantity!r}")
        if Decimal(self.unit_price) < 0:
            raise ValueError(f"Budget item unit price cannot be negative, got {self.unit_price}")
        if self.item_type == BudgetItemType.STOCK_ITEM and self.stock_item_id is None:
            raise ValueError("Stock item budget lines must reference a stock_item_id")

    @property
    def total_price(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity

    @property
    def consumes_stock(self) -> bool:
        return self.item_type == BudgetItemType.STOCK_ITEM


class Budget:
    """
    Client-facing quote for a service order.

    Contract:
        ``is_expired()`` compares ``now`` with
        ``(sent_date or created_at) + validity_period_days``.  A budget that
        was never sent is measured from its generation.

    Guarantees:
        - ``receive()`` is idempotent: calling it on a RECEIVED budget is a
          no-op.
        - A rejected call leaves status and dates unchanged.
    """

    def __init__(
        self,
        *,
        service_order_id: UUID,
        client_id: UUID,
        validity_period_days: int,
        status: BudgetStatus = BudgetStatus.GENERATED,
        id: UUID | None = None,
        items: list[BudgetItem] | tuple[BudgetItem, ...] = (),
        sent_date: datetime | None = None,
        approval_date: datetime | None = None,
        rejection_date: datetime | None = None,
        rejection_reason: str | None = None,
        notes: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        clock: Clock | None = None,
    ):
        if (
            isinstance(validity_period_days, bool)
            or not isinstance(validity_period_days, int)
            or validity_period_days <= 0
        ):
            raise ValueError(
                f"validity_period_days must be a positive integer, got {validity_period_days!r}"
            )
        self._clock = clock or SystemClock()
        now = self._clock.now()
        self._id = id or uuid4()
        self._status = BudgetStatus(status)
        self._service_order_id = service_order_id
        self._client_id = client_id
        self._validity_period_days = validity_period_days
        self._items: list[BudgetItem] = list(items)
        self._sent_date = sent_date
        self._approval_date = approval_date
        self._rejection_date = rejection_date
        self._rejection_reason = rejection_reason
        self._notes = notes
        self._created_at = created_at or now
        self._updated_at = updated_at or self._created_at

    @classmethod
    def create(
        cls,
        service_order_id: UUID,
        client_id: UUID,
        validity_period_days: int,
        notes: str | None = None,
        clock: Clock | None = None,
    ) -> Budget:
        """New budget in GENERATED."""
        return cls(
            service_order_id=service_order_id,
            client_id=client_id,
            validity_period_days=validity_period_days,
            notes=notes,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def status(self) -> BudgetStatus:
        return self._status

    @property
    def service_order_id(self) -> UUID:
        return self._service_order_id

    @property
    def client_id(self) -> UUID:
        return self._client_id

    @property
    def validity_period_days(self) -> int:
        return self._validity_period_days

    @property
    def items(self) -> tuple[BudgetItem, ...]:
        return tuple(self._items)

    @property
    def sent_date(self) -> datetime | None:
        return self._sent_date

    @property
    def approval_date(self) -> datetime | None:
        return self._approval_date

    @property
    def rejection_date(self) -> datetime | None:
        return self._rejection_date

    @property
    def rejection_reason(self) -> str | None:
        return self._rejection_reason

    @property
    def notes(self) -> str | None:
        return self._notes

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def total_amount(self) -> Decimal:
        return sum((item.total_price for item in self._items), Decimal("0"))

    @property
    def expiration_date(self) -> datetime:
        reference = self._sent_date or self._created_at
        return reference + timedelta(days=self._validity_period_days)

    def is_expired(self) -> bool:
        return self._clock.now() > self.expiration_date

    def is_decided(self) -> bool:
        return is_final_state(EntityKind.BUDGET, self._status)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(
        self,
        item_type: BudgetItemType,
        description: str,
        quantity: int,
        unit_price: Decimal,
        stock_item_id: UUID | None = None,
        service_id: UUID | None = None,
        notes: str | None = None,
    ) -> BudgetItem:
        """Append a priced line and return it."""
        item = BudgetItem(
            budget_id=self._id,
            item_type=BudgetItemType(item_type),
            description=description,
            quantity=quantity,
            unit_price=Decimal(unit_price),
            stock_item_id=stock_item_id,
            service_id=service_id,
            notes=notes,
        )
        self._items.append(item)
        self._updated_at = self._clock.now()
        return item

    def stock_items(self) -> tuple[BudgetItem, ...]:
        """Lines that consume stock when the work is approved."""
        return tuple(item for item in self._items if item.consumes_stock)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, target: BudgetStatus) -> datetime:
        validate_transition(EntityKind.BUDGET, self._status, target)
        now = self._clock.now()
        self._status = target
        self._updated_at = now
        return now

    def _check_decidable(self, target: BudgetStatus) -> None:
        if self._status not in (BudgetStatus.SENT, BudgetStatus.RECEIVED):
            raise InvalidBudgetStatusError(
                entity_kind=EntityKind.BUDGET.value,
                from_status=self._status.value,
                to_status=target.value,
                allowed=(BudgetStatus.RECEIVED.value, BudgetStatus.SENT.value),
            )
        if self.is_expired():
            raise BudgetExpiredError(str(self._id), self.expiration_date.isoformat())

    def send(self) -> None:
        """GENERATED -> SENT; starts the validity window."""
        self._sent_date = self._transition(BudgetStatus.SENT)

    def receive(self) -> None:
        """Acknowledge delivery to the client (SENT -> RECEIVED, idempotent)."""
        if self._status == BudgetStatus.RECEIVED:
            return
        self._transition(BudgetStatus.RECEIVED)

    def approve(self) -> None:
        self._check_decidable(BudgetStatus.APPROVED)
        self._approval_date = self._transition(BudgetStatus.APPROVED)

    def reject(self, reason: str | None = None) -> None:
        self._check_decidable(BudgetStatus.REJECTED)
        self._rejection_date = self._transition(BudgetStatus.REJECTED)
        self._rejection_reason = reason

    def __repr__(self) -> str:
        return f"<Budget {self._id} {self._status.value} items={len(self._items)}>"
