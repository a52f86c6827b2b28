"""
Pure domain layer.

This module contains the lifecycle entities, transition tables, stock
values, events and ports, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock.
"""

from workshop_kernel.domain.budget import Budget, BudgetItem, BudgetItemType
from workshop_kernel.domain.clock import Clock, DeterministicClock, SystemClock
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
    StockRepository,
)
from workshop_kernel.domain.service_execution import ServiceExecution
from workshop_kernel.domain.service_order import ServiceOrder
from workshop_kernel.domain.stock import (
    MovementType,
    StockAvailability,
    StockItem,
    StockMovement,
)
from workshop_kernel.domain.transitions import (
    BudgetStatus,
    EntityKind,
    ServiceExecutionStatus,
    ServiceOrderStatus,
    allowed_targets,
    is_final_state,
    is_transition_allowed,
    validate_transition,
)

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Transitions
    "EntityKind",
    "ServiceOrderStatus",
    "BudgetStatus",
    "ServiceExecutionStatus",
    "allowed_targets",
    "is_transition_allowed",
    "validate_transition",
    "is_final_state",
    # Lifecycles
    "ServiceOrder",
    "Budget",
    "BudgetItem",
    "BudgetItemType",
    "ServiceExecution",
    # Stock
    "MovementType",
    "StockItem",
    "StockMovement",
    "StockAvailability",
    # Events
    "WorkflowEvent",
    "WorkflowEventType",
    "CascadeOutcome",
    "CascadeStatus",
    # Ports
    "ServiceOrderRepository",
    "BudgetRepository",
    "ServiceExecutionRepository",
    "StockRepository",
    "EventPublisher",
]
