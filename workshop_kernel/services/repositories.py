"""
SQLAlchemy repositories -- persistence adapters for the domain ports.

Responsibility:
    Load and save ServiceOrder, Budget, ServiceExecution and StockItem
    aggregates, and apply stock movements atomically.

Architecture position:
    Kernel > Services -- imperative shell.  Implements the Protocols in
    ``workshop_kernel.domain.ports``; callers only ever see domain objects.

Invariants enforced:
    - Flush, never commit (see BaseRepository).
    - Stock quantity changes go through a single conditional UPDATE:
      ``current_stock = current_stock - :q WHERE current_stock >= :q``.
      Zero affected rows means the guard failed and nothing is written, so
      two concurrent decrements can never drive stock negative.
    - A movement row is inserted only after its UPDATE matched.
    - Every save, add and movement runs in its own SAVEPOINT, so a failed
      write (a cascade save, a stock consumption) unwinds only itself and a
      retry never double-applies a movement.

Failure modes:
    - SQLAlchemyError subclasses propagate unchanged; RetryPolicy decides
      whether they are worth another attempt.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update

from workshop_kernel.domain.budget import Budget, BudgetItem, BudgetItemType
from workshop_kernel.domain.service_execution import ServiceExecution
from workshop_kernel.domain.service_order import ServiceOrder
from workshop_kernel.domain.stock import MovementType, StockItem, StockMovement
from workshop_kernel.domain.transitions import (
    BudgetStatus,
    ServiceExecutionStatus,
    ServiceOrderStatus,
)
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.budget import BudgetItemRecord, BudgetRecord
from workshop_kernel.models.service_execution import ServiceExecutionRecord
from workshop_kernel.models.service_order import ServiceOrderRecord
from workshop_kernel.models.stock import StockItemRecord, StockMovementRecord
from workshop_kernel.services.base import BaseRepository

logger = get_logger("services.repositories")


class SqlServiceOrderRepository(BaseRepository[ServiceOrderRecord]):
    """ServiceOrderRepository backed by ``service_orders``."""

    model = ServiceOrderRecord

    def _to_domain(self, record: ServiceOrderRecord) -> ServiceOrder:
        return ServiceOrder(
            id=record.id,
            client_id=record.client_id,
            vehicle_id=record.vehicle_id,
            status=ServiceOrderStatus(record.status),
            request_date=record.request_date,
            delivery_date=record.delivery_date,
            cancellation_reason=record.cancellation_reason,
            notes=record.notes,
            created_at=record.created_at,
            updated_at=record.updated_at,
            clock=self.clock,
        )

    def load(self, service_order_id: UUID) -> ServiceOrder | None:
        record = self._get_record(service_order_id)
        if record is None:
            return None
        return self._to_domain(record)

    def save(self, service_order: ServiceOrder) -> ServiceOrder:
        with self._savepoint():
            record = self._get_record(service_order.id)
            if record is None:
                record = ServiceOrderRecord(id=service_order.id)
                self.session.add(record)
            self._fill_record(record, service_order)
        return service_order

    def _fill_record(self, record: ServiceOrderRecord, service_order: ServiceOrder) -> None:
        record.status = service_order.status.value
        record.client_id = service_order.client_id
        record.vehicle_id = service_order.vehicle_id
        record.request_date = service_order.request_date
        record.delivery_date = service_order.delivery_date
        record.cancellation_reason = service_order.cancellation_reason
        record.notes = service_order.notes
        record.created_at = service_order.created_at
        record.updated_at = service_order.updated_at


class SqlBudgetRepository(BaseRepository[BudgetRecord]):
    """BudgetRepository backed by ``budgets`` and ``budget_items``.

    Items are append-only: ``save`` inserts lines it has not seen before and
    leaves existing lines alone.
    """

    model = BudgetRecord

    def _to_domain(self, record: BudgetRecord) -> Budget:
        items = [
            BudgetItem(
                id=item.id,
                budget_id=record.id,
                item_type=BudgetItemType(item.item_type),
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                stock_item_id=item.stock_item_id,
                service_id=item.service_id,
                notes=item.notes,
            )
            for item in record.items
        ]
        return Budget(
            id=record.id,
            service_order_id=record.service_order_id,
            client_id=record.client_id,
            validity_period_days=record.validity_period_days,
            status=BudgetStatus(record.status),
            items=items,
            sent_date=record.sent_date,
            approval_date=record.approval_date,
            rejection_date=record.rejection_date,
            rejection_reason=record.rejection_reason,
            notes=record.notes,
            created_at=record.created_at,
            updated_at=record.updated_at,
            clock=self.clock,
        )

    def load(self, budget_id: UUID) -> Budget | None:
        record = self._get_record(budget_id)
        if record is None:
            return None
        return self._to_domain(record)

    def save(self, budget: Budget) -> Budget:
        with self._savepoint():
            record = self._get_record(budget.id)
            if record is None:
                record = BudgetRecord(id=budget.id)
                self.session.add(record)
            self._fill_record(record, budget)
        return budget

    def _fill_record(self, record: BudgetRecord, budget: Budget) -> None:
        record.status = budget.status.value
        record.service_order_id = budget.service_order_id
        record.client_id = budget.client_id
        record.validity_period_days = budget.validity_period_days
        record.sent_date = budget.sent_date
        record.approval_date = budget.approval_date
        record.rejection_date = budget.rejection_date
        record.rejection_reason = budget.rejection_reason
        record.notes = budget.notes
        record.created_at = budget.created_at
        record.updated_at = budget.updated_at

        known = {item.id for item in record.items}
        for seq, item in enumerate(budget.items):
            if item.id in known:
                continue
            record.items.append(
                BudgetItemRecord(
                    id=item.id,
                    item_type=item.item_type.value,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    stock_item_id=item.stock_item_id,
                    service_id=item.service_id,
                    notes=item.notes,
                    line_seq=seq,
                )
            )


class SqlServiceExecutionRepository(BaseRepository[ServiceExecutionRecord]):
    """ServiceExecutionRepository backed by ``service_executions``."""

    model = ServiceExecutionRecord

    def _to_domain(self, record: ServiceExecutionRecord) -> ServiceExecution:
        return ServiceExecution(
            id=record.id,
            service_order_id=record.service_order_id,
            mechanic_id=record.mechanic_id,
            status=ServiceExecutionStatus(record.status),
            started_at=record.started_at,
            completed_at=record.completed_at,
            actual_hours=record.actual_hours,
            completion_notes=record.completion_notes,
            notes=record.notes,
            created_at=record.created_at,
            updated_at=record.updated_at,
            clock=self.clock,
        )

    def load(self, execution_id: UUID) -> ServiceExecution | None:
        record = self._get_record(execution_id)
        if record is None:
            return None
        return self._to_domain(record)

    def save(self, execution: ServiceExecution) -> ServiceExecution:
        with self._savepoint():
            record = self._get_record(execution.id)
            if record is None:
                record = ServiceExecutionRecord(id=execution.id)
                self.session.add(record)
            self._fill_record(record, execution)
        return execution

    def _fill_record(self, record: ServiceExecutionRecord, execution: ServiceExecution) -> None:
        record.status = execution.status.value
        record.service_order_id = execution.service_order_id
        record.mechanic_id = execution.mechanic_id
        record.started_at = execution.started_at
        record.completed_at = execution.completed_at
        record.actual_hours = execution.actual_hours
        record.completion_notes = execution.completion_notes
        record.notes = execution.notes
        record.created_at = execution.created_at
        record.updated_at = execution.updated_at

    def list_for_service_order(self, service_order_id: UUID) -> list[ServiceExecution]:
        stmt = (
            select(ServiceExecutionRecord)
            .where(ServiceExecutionRecord.service_order_id == service_order_id)
            .order_by(ServiceExecutionRecord.created_at)
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars()]


class SqlStockRepository(BaseRepository[StockItemRecord]):
    """
    StockRepository backed by ``stock_items`` and ``stock_movements``.

    Contract:
        ``apply_movement`` is the only way ``current_stock`` changes after
        the item is added.  It returns the fresh snapshot, or ``None`` when
        the conditional UPDATE matched no row.

    Non-goals:
        Does NOT decide whether a movement is legal; StockLedger does that
        before calling, and the UPDATE guard re-checks it.
    """

    model = StockItemRecord

    @staticmethod
    def _to_domain(record: StockItemRecord) -> StockItem:
        return StockItem(
            id=record.id,
            sku=record.sku,
            name=record.name,
            description=record.description,
            current_stock=record.current_stock,
            min_stock_level=record.min_stock_level,
            unit_cost=record.unit_cost,
            unit_sale_price=record.unit_sale_price,
            supplier=record.supplier,
            version=record.version,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _movement_to_domain(record: StockMovementRecord) -> StockMovement:
        return StockMovement(
            id=record.id,
            stock_item_id=record.stock_item_id,
            movement_type=MovementType(record.movement_type),
            quantity=record.quantity,
            reason=record.reason,
            occurred_at=record.occurred_at,
        )

    def load(self, stock_item_id: UUID) -> StockItem | None:
        record = self._get_record(stock_item_id)
        if record is None:
            return None
        return self._to_domain(record)

    def find_by_sku(self, sku: str) -> StockItem | None:
        stmt = select(StockItemRecord).where(StockItemRecord.sku == sku)
        record = self.session.execute(stmt).scalar_one_or_none()
        if record is None:
            return None
        return self._to_domain(record)

    def add(self, item: StockItem) -> StockItem:
        created_at = item.created_at or self.clock.now()
        record = StockItemRecord(
            id=item.id,
            sku=item.sku,
            name=item.name,
            description=item.description,
            current_stock=item.current_stock,
            min_stock_level=item.min_stock_level,
            unit_cost=item.unit_cost,
            unit_sale_price=item.unit_sale_price,
            supplier=item.supplier,
            version=item.version,
            created_at=created_at,
            updated_at=item.updated_at or created_at,
        )
        with self._savepoint():
            self.session.add(record)
        return self._to_domain(record)

    def apply_movement(self, movement: StockMovement) -> StockItem | None:
        stmt = update(StockItemRecord).where(StockItemRecord.id == movement.stock_item_id)
        if movement.movement_type == MovementType.OUT:
            stmt = stmt.where(StockItemRecord.current_stock >= movement.quantity)
        stmt = stmt.values(
            current_stock=StockItemRecord.current_stock + movement.signed_quantity,
            version=StockItemRecord.version + 1,
            updated_at=movement.occurred_at,
        )

        # UPDATE and movement INSERT share one savepoint
        with self._savepoint():
            result = self.session.execute(
                stmt, execution_options={"synchronize_session": False}
            )
            if result.rowcount == 0:
                logger.debug(
                    "stock_guard_rejected",
                    extra={
                        "stock_item_id": str(movement.stock_item_id),
                        "movement_type": movement.movement_type.value,
                        "quantity": movement.quantity,
                    },
                )
                return None

            record = self.session.get(
                StockItemRecord, movement.stock_item_id, populate_existing=True
            )
            self.session.add(self._movement_record(movement, seq=record.version))
        return self._to_domain(record)

    def _movement_record(self, movement: StockMovement, seq: int) -> StockMovementRecord:
        return StockMovementRecord(
            id=movement.id,
            stock_item_id=movement.stock_item_id,
            movement_type=movement.movement_type.value,
            quantity=movement.quantity,
            reason=movement.reason,
            occurred_at=movement.occurred_at,
            seq=seq,
        )

    def list_movements(self, stock_item_id: UUID) -> list[StockMovement]:
        stmt = (
            select(StockMovementRecord)
            .where(StockMovementRecord.stock_item_id == stock_item_id)
            .order_by(StockMovementRecord.seq)
        )
        return [self._movement_to_domain(r) for r in self.session.execute(stmt).scalars()]
