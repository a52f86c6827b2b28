"""
WorkflowCoordinator -- cross-aggregate workflow engine.

Responsibility:
    Drives a primary transition on one aggregate (budget, execution or
    service order), persists it, then reacts by moving the correlated
    service order along:

        Budget sent             -> order AWAITING_APPROVAL  (if IN_DIAGNOSIS)
        Budget approved         -> order APPROVED, then stock consumed
        Budget rejected         -> order REJECTED
        Execution started       -> order IN_EXECUTION  (if APPROVED/SCHEDULED)
        Execution completed     -> order FINISHED      (if IN_EXECUTION)

Architecture position:
    Kernel > Services -- imperative shell.  Depends only on the ports in
    ``workshop_kernel.domain.ports``, the StockLedger and RetryPolicy.

Invariants enforced:
    - The primary transition is validated and persisted before any cascade
      is attempted.  Primary failures always propagate and leave nothing
      written.
    - Cascade failures never propagate: the primary stays persisted, a
      CASCADE_FAILED event is published and the result reports it.
    - A service order has at most one active (ASSIGNED or IN_PROGRESS)
      execution.
    - Budget items can only be added while the order is IN_DIAGNOSIS.
    - Every repository call goes through RetryPolicy.

Failure modes:
    - EntityNotFoundError: the driving aggregate does not exist.
    - InvalidStatusTransitionError / InvalidBudgetStatusError /
      BudgetExpiredError / MechanicNotAssignedError: primary rule broken.
    - InvalidServiceOrderStatusForBudgetItemError, ActiveExecutionExistsError.
    - RetryableError: storage kept failing on the primary path.

Usage:
    with session_scope() as session:
        coordinator = WorkflowCoordinator(
            service_orders=SqlServiceOrderRepository(session, clock),
            budgets=SqlBudgetRepository(session, clock),
            executions=SqlServiceExecutionRepository(session, clock),
            stock_ledger=StockLedger(SqlStockRepository(session, clock), policy, clock),
            publisher=RecordingEventPublisher(session),
            retry_policy=policy,
            clock=clock,
        )
        result = coordinator.approve_budget(budget_id)
        if not result.cascade.succeeded:
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Generic, TypeVar
from uuid import UUID

from workshop_kernel.domain.budget import Budget, BudgetItemType
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.events import (
    CascadeOutcome,
    CascadeStatus,
    WorkflowEvent,
    WorkflowEventType,
)
from workshop_kernel.domain.ports import (
    BudgetRepository,
    EventPublisher,
    ServiceExecutionRepository,
    ServiceOrderRepository,
)
from workshop_kernel.domain.service_execution import ServiceExecution
from workshop_kernel.domain.service_order import ServiceOrder
from workshop_kernel.domain.transitions import EntityKind, ServiceOrderStatus
from workshop_kernel.exceptions import (
    ActiveExecutionExistsError,
    EntityNotFoundError,
    InvalidServiceOrderStatusForBudgetItemError,
    RetryableError,
    StockError,
    WorkflowError,
)
from workshop_kernel.logging_config import LogContext, get_logger
from workshop_kernel.services.retry_service import RetryPolicy
from workshop_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.workflow_coordinator")

A = TypeVar("A")

STOCK_CONSUMPTION_REASON = "Used for service order {service_order_id}"


@dataclass(frozen=True)
class StockConsumption:
    """Outcome of consuming one STOCK_ITEM budget line after approval."""

    budget_item_id: UUID
    stock_item_id: UUID
    quantity: int
    succeeded: bool
    remaining_stock: int | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class WorkflowResult(Generic[A]):
    """What a coordinator operation did.

    ``aggregate`` is the driving aggregate after its primary transition.
    ``cascade`` is None for operations that have no cascade.
    """

    aggregate: A
    cascade: CascadeOutcome | None = None
    events: tuple[WorkflowEvent, ...] = ()
    stock_consumption: tuple[StockConsumption, ...] = ()

    @property
    def warnings(self) -> tuple[WorkflowEvent, ...]:
        return tuple(e for e in self.events if e.is_warning)


class WorkflowCoordinator:
    """
    Orchestrates the workshop lifecycles and their cascades.

    Contract:
        Every public operation performs (a) the primary transition,
        (b) persists it, (c) attempts the cascade on the correlated service
        order and persists that, and (d) publishes events for both.

    Guarantees:
        - The returned WorkflowResult lists every event published by the
          call, in publication order.
        - Re-invoking an operation whose primary already happened fails
          loudly with an illegal-transition error.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT undo the primary when the cascade fails.
    """

    def __init__(
        self,
        service_orders: ServiceOrderRepository,
        budgets: BudgetRepository,
        executions: ServiceExecutionRepository,
        stock_ledger: StockLedger,
        publisher: EventPublisher,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._service_orders = service_orders
        self._budgets = budgets
        self._executions = executions
        self._stock_ledger = stock_ledger
        self._publisher = publisher
        self._retry = retry_policy or RetryPolicy()
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def _load(self, repository: Any, kind: EntityKind, aggregate_id: UUID) -> Any:
        aggregate = self._retry.with_retry(lambda: repository.load(aggregate_id))
        if aggregate is None:
            raise EntityNotFoundError(kind.value, str(aggregate_id))
        return aggregate

    def _load_order(self, service_order_id: UUID) -> ServiceOrder:
        return self._load(self._service_orders, EntityKind.SERVICE_ORDER, service_order_id)

    def _load_budget(self, budget_id: UUID) -> Budget:
        return self._load(self._budgets, EntityKind.BUDGET, budget_id)

    def _load_execution(self, execution_id: UUID) -> ServiceExecution:
        return self._load(self._executions, EntityKind.SERVICE_EXECUTION, execution_id)

    def _save(self, repository: Any, aggregate: A) -> A:
        return self._retry.with_retry(lambda: repository.save(aggregate))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _event(
        self,
        event_type: WorkflowEventType,
        kind: EntityKind,
        aggregate_id: UUID,
        **payload: Any,
    ) -> WorkflowEvent:
        return WorkflowEvent(
            event_type=event_type,
            aggregate_kind=kind.value,
            aggregate_id=aggregate_id,
            occurred_at=self._clock.now(),
            payload=payload,
        )

    def _publish(self, events: list[WorkflowEvent]) -> tuple[WorkflowEvent, ...]:
        for event in events:
            self._publisher.publish(event)
        return tuple(events)

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def _cascade_to_order(
        self,
        service_order_id: UUID,
        trigger: WorkflowEventType,
        target: ServiceOrderStatus,
        transition: Callable[[ServiceOrder], None],
        required: frozenset[ServiceOrderStatus] | None = None,
    ) -> tuple[CascadeOutcome, WorkflowEvent]:
        """Try to move the correlated order; never raises for cascade problems."""

        def outcome(status: CascadeStatus, from_status: str | None, reason: str | None) -> CascadeOutcome:
            return CascadeOutcome(
                status=status,
                target_kind=EntityKind.SERVICE_ORDER.value,
                target_id=service_order_id,
                from_status=from_status,
                to_status=target.value,
                reason=reason,
            )

        from_status: str | None = None
        try:
            order = self._retry.with_retry(lambda: self._service_orders.load(service_order_id))
            if order is None:
                result = outcome(CascadeStatus.FAILED, None, "service order not found")
            else:
                from_status = order.status.value
                if required is not None and order.status not in required:
                    expected = ", ".join(sorted(s.value for s in required))
                    result = outcome(
                        CascadeStatus.SKIPPED,
                        from_status,
                        f"service order is {from_status}; cascade requires {expected}",
                    )
                else:
                    transition(order)
                    self._save(self._service_orders, order)
                    result = outcome(CascadeStatus.APPLIED, from_status, None)
        except (WorkflowError, RetryableError) as exc:
            result = outcome(CascadeStatus.FAILED, from_status, str(exc))

        log_extra = {
            "trigger": trigger.value,
            "target_id": str(service_order_id),
            "from_status": result.from_status,
            "to_status": result.to_status,
            "reason": result.reason,
        }
        if result.status == CascadeStatus.APPLIED:
            logger.info("cascade_applied", extra=log_extra)
            event_type = WorkflowEventType.CASCADE_APPLIED
        elif result.status == CascadeStatus.SKIPPED:
            logger.warning("cascade_skipped", extra=log_extra)
            event_type = WorkflowEventType.CASCADE_SKIPPED
        else:
            logger.warning("cascade_failed", extra=log_extra)
            event_type = WorkflowEventType.CASCADE_FAILED

        event = self._event(
            event_type,
            EntityKind.SERVICE_ORDER,
            service_order_id,
            trigger=trigger.value,
            from_status=result.from_status,
            to_status=result.to_status,
            reason=result.reason,
        )
        return result, event

    # ------------------------------------------------------------------
    # Budget operations
    # ------------------------------------------------------------------

    def add_budget_item(
        self,
        budget_id: UUID,
        item_type: BudgetItemType,
        description: str,
        quantity: int,
        unit_price: Decimal,
        stock_item_id: UUID | None = None,
        service_id: UUID | None = None,
        notes: str | None = None,
    ) -> WorkflowResult[Budget]:
        """Add a priced line to a budget whose order is in diagnosis.

        Raises:
            InvalidServiceOrderStatusForBudgetItemError: Order not IN_DIAGNOSIS.
            EntityNotFoundError: Budget, order or referenced stock item missing.
        """
        with LogContext.bind(budget_id=budget_id):
            budget = self._load_budget(budget_id)
            order = self._load_order(budget.service_order_id)
            if not order.can_add_budget_items():
                raise InvalidServiceOrderStatusForBudgetItemError(
                    str(order.id), order.status.value
                )
            if stock_item_id is not None:
                self._stock_ledger.get_item(stock_item_id)

            item = budget.add_item(
                item_type=item_type,
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                stock_item_id=stock_item_id,
                service_id=service_id,
                notes=notes,
            )
            self._save(self._budgets, budget)
            logger.info(
                "budget_item_added",
                extra={
                    "budget_item_id": str(item.id),
                    "item_type": item.item_type.value,
                    "quantity": item.quantity,
                    "total_amount": str(budget.total_amount),
                },
            )
            events = self._publish([
                self._event(
                    WorkflowEventType.BUDGET_ITEM_ADDED,
                    EntityKind.BUDGET,
                    budget.id,
                    budget_item_id=str(item.id),
                    item_type=item.item_type.value,
                    quantity=item.quantity,
                    total_price=str(item.total_price),
                    total_amount=str(budget.total_amount),
                ),
            ])
            return WorkflowResult(aggregate=budget, events=events)

    def send_budget(self, budget_id: UUID) -> WorkflowResult[Budget]:
        """GENERATED -> SENT; order IN_DIAGNOSIS -> AWAITING_APPROVAL."""
        with LogContext.bind(budget_id=budget_id):
            budget = self._load_budget(budget_id)
            budget.send()
            self._save(self._budgets, budget)
            logger.info("budget_sent", extra={"sent_date": budget.sent_date})

            primary = self._event(
                WorkflowEventType.BUDGET_SENT,
                EntityKind.BUDGET,
                budget.id,
                service_order_id=str(budget.service_order_id),
            )
            cascade, cascade_event = self._cascade_to_order(
                budget.service_order_id,
                WorkflowEventType.BUDGET_SENT,
                ServiceOrderStatus.AWAITING_APPROVAL,
                ServiceOrder.mark_awaiting_approval,
                required=frozenset({ServiceOrderStatus.IN_DIAGNOSIS}),
            )
            events = self._publish([primary, cascade_event])
            return WorkflowResult(aggregate=budget, cascade=cascade, events=events)

    def receive_budget(self, budget_id: UUID) -> WorkflowResult[Budget]:
        """SENT -> RECEIVED.  Already RECEIVED is a no-op with no event."""
        with LogContext.bind(budget_id=budget_id):
            budget = self._load_budget(budget_id)
            before = budget.status
            budget.receive()
            if budget.status == before:
                return WorkflowResult(aggregate=budget)
            self._save(self._budgets, budget)
            logger.info("budget_received")
            events = self._publish([
                self._event(WorkflowEventType.BUDGET_RECEIVED, EntityKind.BUDGET, budget.id),
            ])
            return WorkflowResult(aggregate=budget, events=events)

    def approve_budget(self, budget_id: UUID) -> WorkflowResult[Budget]:
        """Approve the budget, approve its order, then consume its stock lines.

        Stock is consumed only once the order actually reached APPROVED.
        Each line that cannot be consumed is reported, not raised.
        """
        with LogContext.bind(budget_id=budget_id):
            budget = self._load_budget(budget_id)
            budget.approve()
            self._save(self._budgets, budget)
            logger.info(
                "budget_approved",
                extra={"total_amount": str(budget.total_amount)},
            )

            events = [
                self._event(
                    WorkflowEventType.BUDGET_APPROVED,
                    EntityKind.BUDGET,
                    budget.id,
                    service_order_id=str(budget.service_order_id),
                    total_amount=str(budget.total_amount),
                ),
            ]
            cascade, cascade_event = self._cascade_to_order(
                budget.service_order_id,
                WorkflowEventType.BUDGET_APPROVED,
                ServiceOrderStatus.APPROVED,
                ServiceOrder.mark_approved,
            )
            events.append(cascade_event)

            consumption: tuple[StockConsumption, ...] = ()
            if cascade.succeeded:
                consumption, consumption_events = self._consume_stock(budget)
                events.extend(consumption_events)

            return WorkflowResult(
                aggregate=budget,
                cascade=cascade,
                events=self._publish(events),
                stock_consumption=consumption,
            )

    def _consume_stock(
        self, budget: Budget
    ) -> tuple[tuple[StockConsumption, ...], list[WorkflowEvent]]:
        reason = STOCK_CONSUMPTION_REASON.format(service_order_id=budget.service_order_id)
        results: list[StockConsumption] = []
        events: list[WorkflowEvent] = []

        for item in budget.stock_items():
            try:
                updated = self._stock_ledger.decrease(item.stock_item_id, item.quantity, reason)
            except (StockError, EntityNotFoundError, RetryableError) as exc:
                logger.warning(
                    "stock_consumption_failed",
                    extra={
                        "budget_item_id": str(item.id),
                        "stock_item_id": str(item.stock_item_id),
                        "quantity": item.quantity,
                        "error_code": exc.code,
                    },
                )
                results.append(
                    StockConsumption(
                        budget_item_id=item.id,
                        stock_item_id=item.stock_item_id,
                        quantity=item.quantity,
                        succeeded=False,
                        error_code=exc.code,
                        error_message=str(exc),
                    )
                )
                events.append(
                    self._event(
                        WorkflowEventType.STOCK_CONSUMPTION_FAILED,
                        EntityKind.BUDGET,
                        budget.id,
                        budget_item_id=str(item.id),
                        stock_item_id=str(item.stock_item_id),
                        quantity=item.quantity,
                        error_code=exc.code,
                        error_message=str(exc),
                    )
                )
                continue

            results.append(
                StockConsumption(
                    budget_item_id=item.id,
                    stock_item_id=item.stock_item_id,
                    quantity=item.quantity,
                    succeeded=True,
                    remaining_stock=updated.current_stock,
                )
            )
            events.append(
                self._event(
                    WorkflowEventType.STOCK_CONSUMED,
                    EntityKind.BUDGET,
                    budget.id,
                    budget_item_id=str(item.id),
                    stock_item_id=str(item.stock_item_id),
                    quantity=item.quantity,
                    remaining_stock=updated.current_stock,
                )
            )

        return tuple(results), events

    def reject_budget(self, budget_id: UUID, reason: str | None = None) -> WorkflowResult[Budget]:
        """Reject the budget; order AWAITING_APPROVAL -> REJECTED."""
        with LogContext.bind(budget_id=budget_id):
            budget = self._load_budget(budget_id)
            budget.reject(reason)
            self._save(self._budgets, budget)
            logger.info("budget_rejected", extra={"rejection_reason": reason})

            primary = self._event(
                WorkflowEventType.BUDGET_REJECTED,
                EntityKind.BUDGET,
                budget.id,
                service_order_id=str(budget.service_order_id),
                reason=reason,
            )
            cascade, cascade_event = self._cascade_to_order(
                budget.service_order_id,
                WorkflowEventType.BUDGET_REJECTED,
                ServiceOrderStatus.REJECTED,
                ServiceOrder.mark_rejected,
            )
            events = self._publish([primary, cascade_event])
            return WorkflowResult(aggregate=budget, cascade=cascade, events=events)

    # ------------------------------------------------------------------
    # Execution operations
    # ------------------------------------------------------------------

    def create_execution(
        self,
        service_order_id: UUID,
        mechanic_id: UUID | None = None,
        notes: str | None = None,
    ) -> WorkflowResult[ServiceExecution]:
        """Open a new ASSIGNED execution for an order.

        Raises:
            ActiveExecutionExistsError: The order already has one in flight.
            EntityNotFoundError: Unknown order.
        """
        with LogContext.bind(service_order_id=service_order_id):
            self._load_order(service_order_id)
            existing = self._retry.with_retry(
                lambda: self._executions.list_for_service_order(service_order_id)
            )
            for execution in existing:
                if execution.is_active:
                    raise ActiveExecutionExistsError(str(service_order_id), str(execution.id))

            execution = ServiceExecution.create(
                service_order_id=service_order_id,
                mechanic_id=mechanic_id,
                notes=notes,
                clock=self._clock,
            )
            self._save(self._executions, execution)
            logger.info(
                "execution_created",
                extra={
                    "execution_id": str(execution.id),
                    "mechanic_id": str(mechanic_id) if mechanic_id else None,
                },
            )
            events = self._publish([
                self._event(
                    WorkflowEventType.EXECUTION_CREATED,
                    EntityKind.SERVICE_EXECUTION,
                    execution.id,
                    service_order_id=str(service_order_id),
                    mechanic_id=str(mechanic_id) if mechanic_id else None,
                ),
            ])
            return WorkflowResult(aggregate=execution, events=events)

    def start_execution(
        self,
        execution_id: UUID,
        mechanic_id: UUID | None = None,
    ) -> WorkflowResult[ServiceExecution]:
        """ASSIGNED -> IN_PROGRESS; order APPROVED/SCHEDULED -> IN_EXECUTION.

        ``mechanic_id``, when given, is assigned before starting.
        """
        with LogContext.bind(execution_id=execution_id):
            execution = self._load_execution(execution_id)
            if mechanic_id is not None:
                execution.assign_mechanic(mechanic_id)
            execution.start()
            self._save(self._executions, execution)
            logger.info("execution_started", extra={"started_at": execution.started_at})

            primary = self._event(
                WorkflowEventType.EXECUTION_STARTED,
                EntityKind.SERVICE_EXECUTION,
                execution.id,
                service_order_id=str(execution.service_order_id),
                mechanic_id=str(execution.mechanic_id),
            )
            cascade, cascade_event = self._cascade_to_order(
                execution.service_order_id,
                WorkflowEventType.EXECUTION_STARTED,
                ServiceOrderStatus.IN_EXECUTION,
                ServiceOrder.mark_in_execution,
                required=frozenset({ServiceOrderStatus.APPROVED, ServiceOrderStatus.SCHEDULED}),
            )
            events = self._publish([primary, cascade_event])
            return WorkflowResult(aggregate=execution, cascade=cascade, events=events)

    def complete_execution(
        self,
        execution_id: UUID,
        actual_hours: Decimal | int | float,
        notes: str | None = None,
    ) -> WorkflowResult[ServiceExecution]:
        """IN_PROGRESS -> COMPLETED; order IN_EXECUTION -> FINISHED."""
        with LogContext.bind(execution_id=execution_id):
            execution = self._load_execution(execution_id)
            execution.complete(actual_hours, notes)
            self._save(self._executions, execution)
            logger.info(
                "execution_completed",
                extra={
                    "actual_hours": str(execution.actual_hours),
                    "duration_minutes": execution.duration_minutes,
                },
            )

            primary = self._event(
                WorkflowEventType.EXECUTION_COMPLETED,
                EntityKind.SERVICE_EXECUTION,
                execution.id,
                service_order_id=str(execution.service_order_id),
                actual_hours=str(execution.actual_hours),
            )
            cascade, cascade_event = self._cascade_to_order(
                execution.service_order_id,
                WorkflowEventType.EXECUTION_COMPLETED,
                ServiceOrderStatus.FINISHED,
                ServiceOrder.mark_finished,
                required=frozenset({ServiceOrderStatus.IN_EXECUTION}),
            )
            events = self._publish([primary, cascade_event])
            return WorkflowResult(aggregate=execution, cascade=cascade, events=events)

    # ------------------------------------------------------------------
    # Administrative
    # ------------------------------------------------------------------

    def update_service_order_status(
        self,
        service_order_id: UUID,
        target: ServiceOrderStatus,
        reason: str | None = None,
    ) -> WorkflowResult[ServiceOrder]:
        """Move an order through the same transition table, without cascades."""
        with LogContext.bind(service_order_id=service_order_id):
            order = self._load_order(service_order_id)
            from_status = order.status
            order.update_status(target, reason)
            self._save(self._service_orders, order)
            logger.info(
                "service_order_status_changed",
                extra={"from_status": from_status.value, "to_status": order.status.value},
            )
            events = self._publish([
                self._event(
                    WorkflowEventType.SERVICE_ORDER_STATUS_CHANGED,
                    EntityKind.SERVICE_ORDER,
                    order.id,
                    from_status=from_status.value,
                    to_status=order.status.value,
                    reason=reason,
                ),
            ])
            return WorkflowResult(aggregate=order, events=events)
