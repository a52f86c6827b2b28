"""
Persistence and event ports (``workshop_kernel.domain.ports``).

Responsibility:
    Structural interfaces the WorkflowCoordinator and StockLedger depend on.
    SQLAlchemy adapters live in ``workshop_kernel.services.repositories``;
    event adapters in ``workshop_kernel.services.event_bus``.

Architecture position:
    Kernel > Domain -- Protocols only, zero I/O.

Contract:
    - ``load`` returns ``None`` for an unknown id; callers decide whether a
      miss is an error.
    - ``save``/``add`` flush but never commit.  The caller owns the
      transaction.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from workshop_kernel.domain.budget import Budget
from workshop_kernel.domain.events import WorkflowEvent
from workshop_kernel.domain.service_execution import ServiceExecution
from workshop_kernel.domain.service_order import ServiceOrder
from workshop_kernel.domain.stock import StockItem, StockMovement


class ServiceOrderRepository(Protocol):
    def load(self, service_order_id: UUID) -> ServiceOrder | None: ...

    def save(self, service_order: ServiceOrder) -> ServiceOrder: ...


class BudgetRepository(Protocol):
    def load(self, budget_id: UUID) -> Budget | None: ...

    def save(self, budget: Budget) -> Budget: ...


class ServiceExecutionRepository(Protocol):
    def load(self, execution_id: UUID) -> ServiceExecution | None: ...

    def save(self, execution: ServiceExecution) -> ServiceExecution: ...

    def list_for_service_order(self, service_order_id: UUID) -> list[ServiceExecution]: ...


class StockRepository(Protocol):
    """Stock persistence port."""

    def load(self, stock_item_id: UUID) -> StockItem | None: ...

    def find_by_sku(self, sku: str) -> StockItem | None: ...

    def add(self, item: StockItem) -> StockItem: ...

    def apply_movement(self, movement: StockMovement) -> StockItem | None:
        """Apply ``movement`` atomically and append it to the history.

        Returns the updated snapshot, or ``None`` when the write-time guard
        (``current_stock >= quantity`` for OUT) rejected the change.  Nothing
        is appended in that case.
        """
        ...

    def list_movements(self, stock_item_id: UUID) -> list[StockMovement]: ...


class EventPublisher(Protocol):
    def publish(self, event: WorkflowEvent) -> None: ...
