"""
Status transition tables (``workshop_kernel.domain.transitions``).

Responsibility
--------------
Single source of truth for every legal status transition in the workshop:
service orders, budgets and service executions.  Each lifecycle entity
consults these tables instead of carrying its own inline conditionals, so
the tables can be tested on their own.

Architecture position
---------------------
**Kernel domain layer** -- pure data and pure functions.  ZERO I/O.
Imports only ``workshop_kernel.exceptions``.

Invariants enforced
-------------------
* Every status of every kind appears as a key in its table (terminal states
  map to an empty frozenset).
* ``validate_transition`` is the only place that raises
  ``InvalidStatusTransitionError`` for a table miss.
* DELIVERED is reported as final by ``is_final_state`` yet keeps its
  DELIVERED -> REJECTED edge (post-delivery return path).
"""

from __future__ import annotations

from enum import Enum

from workshop_kernel.exceptions import (
    InvalidBudgetStatusError,
    InvalidStatusTransitionError,
)


class EntityKind(str, Enum):
    """Aggregate kinds governed by a transition table."""

    SERVICE_ORDER = "service_order"
    BUDGET = "budget"
    SERVICE_EXECUTION = "service_execution"


class ServiceOrderStatus(str, Enum):
    """Service order lifecycle states."""

    REQUESTED = "requested"
    RECEIVED = "received"
    IN_DIAGNOSIS = "in_diagnosis"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_EXECUTION = "in_execution"
    FINISHED = "finished"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class BudgetStatus(str, Enum):
    """Budget lifecycle states."""

    GENERATED = "generated"
    SENT = "sent"
    RECEIVED = "received"
    APPROVED = "approved"
    REJECTED = "rejected"


class ServiceExecutionStatus(str, Enum):
    """Service execution lifecycle states."""

    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# =========================================================================
# Transition tables (from -> set of valid targets)
# =========================================================================

SERVICE_ORDER_TRANSITIONS: dict[ServiceOrderStatus, frozenset[ServiceOrderStatus]] = {
    ServiceOrderStatus.REQUESTED: frozenset({
        ServiceOrderStatus.RECEIVED,
        ServiceOrderStatus.REJECTED,
        ServiceOrderStatus.CANCELLED,
    }),
    ServiceOrderStatus.RECEIVED: frozenset({
        ServiceOrderStatus.IN_DIAGNOSIS,
        ServiceOrderStatus.CANCELLED,
    }),
    ServiceOrderStatus.IN_DIAGNOSIS: frozenset({
        ServiceOrderStatus.AWAITING_APPROVAL,
        ServiceOrderStatus.CANCELLED,
    }),
    ServiceOrderStatus.AWAITING_APPROVAL: frozenset({
        ServiceOrderStatus.APPROVED,
        ServiceOrderStatus.REJECTED,
    }),
    ServiceOrderStatus.APPROVED: frozenset({ServiceOrderStatus.IN_EXECUTION}),
    ServiceOrderStatus.SCHEDULED: frozenset({ServiceOrderStatus.IN_EXECUTION}),
    ServiceOrderStatus.IN_EXECUTION: frozenset({ServiceOrderStatus.FINISHED}),
    ServiceOrderStatus.FINISHED: frozenset({ServiceOrderStatus.DELIVERED}),
    # Post-delivery return path
    ServiceOrderStatus.DELIVERED: frozenset({ServiceOrderStatus.REJECTED}),
    ServiceOrderStatus.REJECTED: frozenset(),
    ServiceOrderStatus.CANCELLED: frozenset(),
}

BUDGET_TRANSITIONS: dict[BudgetStatus, frozenset[BudgetStatus]] = {
    BudgetStatus.GENERATED: frozenset({BudgetStatus.SENT}),
    # Client may decide directly from SENT when the receipt step is skipped
    BudgetStatus.SENT: frozenset({
        BudgetStatus.RECEIVED,
        BudgetStatus.APPROVED,
        BudgetStatus.REJECTED,
    }),
    BudgetStatus.RECEIVED: frozenset({
        BudgetStatus.APPROVED,
        BudgetStatus.REJECTED,
    }),
    BudgetStatus.APPROVED: frozenset(),
    BudgetStatus.REJECTED: frozenset(),
}

SERVICE_EXECUTION_TRANSITIONS: dict[
    ServiceExecutionStatus, frozenset[ServiceExecutionStatus]
] = {
    ServiceExecutionStatus.ASSIGNED: frozenset({ServiceExecutionStatus.IN_PROGRESS}),
    ServiceExecutionStatus.IN_PROGRESS: frozenset({ServiceExecutionStatus.COMPLETED}),
    ServiceExecutionStatus.COMPLETED: frozenset(),
}

TRANSITION_TABLES: dict[EntityKind, dict] = {
    EntityKind.SERVICE_ORDER: SERVICE_ORDER_TRANSITIONS,
    EntityKind.BUDGET: BUDGET_TRANSITIONS,
    EntityKind.SERVICE_EXECUTION: SERVICE_EXECUTION_TRANSITIONS,
}

FINAL_STATES: dict[EntityKind, frozenset] = {
    EntityKind.SERVICE_ORDER: frozenset({
        ServiceOrderStatus.DELIVERED,
        ServiceOrderStatus.CANCELLED,
        ServiceOrderStatus.REJECTED,
    }),
    EntityKind.BUDGET: frozenset({
        BudgetStatus.APPROVED,
        BudgetStatus.REJECTED,
    }),
    EntityKind.SERVICE_EXECUTION: frozenset({
        ServiceExecutionStatus.COMPLETED,
    }),
}

_TRANSITION_ERRORS: dict[EntityKind, type[InvalidStatusTransitionError]] = {
    EntityKind.BUDGET: InvalidBudgetStatusError,
}


# =========================================================================
# Queries
# =========================================================================


def allowed_targets(kind: EntityKind, current: Enum) -> frozenset:
    """Return the set of statuses reachable in one step from ``current``."""
    return TRANSITION_TABLES[kind].get(current, frozenset())


def is_transition_allowed(kind: EntityKind, current: Enum, target: Enum) -> bool:
    """Check whether ``current -> target`` is a legal edge for ``kind``."""
    return target in allowed_targets(kind, current)


def validate_transition(kind: EntityKind, current: Enum, target: Enum) -> None:
    """Raise if ``current -> target`` is not a legal edge for ``kind``.

    Raises:
        InvalidBudgetStatusError: For budgets.
        InvalidStatusTransitionError: For every other kind.
    """
    allowed = allowed_targets(kind, current)
    if target not in allowed:
        error_cls = _TRANSITION_ERRORS.get(kind, InvalidStatusTransitionError)
        raise error_cls(
            entity_kind=kind.value,
            from_status=current.value,
            to_status=target.value,
            allowed=tuple(sorted(s.value for s in allowed)),
        )


def final_states(kind: EntityKind) -> frozenset:
    """Statuses reported as final for ``kind``."""
    return FINAL_STATES[kind]


def is_final_state(kind: EntityKind, status: Enum) -> bool:
    """Check whether ``status`` is a final state for ``kind``.

    Note that a final service order state may still have an outgoing edge
    (DELIVERED -> REJECTED); use ``allowed_targets`` to ask about moves.
    """
    return status in FINAL_STATES[kind]
