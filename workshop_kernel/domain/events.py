"""
Workflow events and cascade outcomes (``workshop_kernel.domain.events``).

Responsibility
--------------
Immutable records describing what the WorkflowCoordinator did: the primary
transition it applied, the cascade it attempted on the correlated aggregate,
and any stock it consumed along the way.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Events are never mutated after creation; ``payload`` is copied on
  construction.
* A ``CascadeOutcome`` is APPLIED only when the correlated aggregate's
  transition was applied and persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class WorkflowEventType(str, Enum):
    """Kinds of events published by the coordinator."""

    BUDGET_ITEM_ADDED = "budget_item_added"
    BUDGET_SENT = "budget_sent"
    BUDGET_RECEIVED = "budget_received"
    BUDGET_APPROVED = "budget_approved"
    BUDGET_REJECTED = "budget_rejected"
    EXECUTION_CREATED = "execution_created"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    SERVICE_ORDER_STATUS_CHANGED = "service_order_status_changed"
    CASCADE_APPLIED = "cascade_applied"
    CASCADE_SKIPPED = "cascade_skipped"
    CASCADE_FAILED = "cascade_failed"
    STOCK_CONSUMED = "stock_consumed"
    STOCK_CONSUMPTION_FAILED = "stock_consumption_failed"


# Event types that signal something a human should look at.
WARNING_EVENT_TYPES: frozenset[WorkflowEventType] = frozenset({
    WorkflowEventType.CASCADE_SKIPPED,
    WorkflowEventType.CASCADE_FAILED,
    WorkflowEventType.STOCK_CONSUMPTION_FAILED,
})


@dataclass(frozen=True)
class WorkflowEvent:
    """A single published domain event. Immutable."""

    event_type: WorkflowEventType
    aggregate_kind: str
    aggregate_id: UUID
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_type", WorkflowEventType(self.event_type))
        object.__setattr__(self, "payload", dict(self.payload))

    @property
    def is_warning(self) -> bool:
        return self.event_type in WARNING_EVENT_TYPES


class CascadeStatus(str, Enum):
    """Result of a cascade attempt on the correlated aggregate."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class CascadeOutcome:
    """What happened to the correlated aggregate after a primary transition.

    SKIPPED means the cascade's precondition did not hold (for example the
    order was not IN_DIAGNOSIS when its budget was sent).  FAILED means the
    cascade was attempted and could not be applied or persisted.
    """

    status: CascadeStatus
    target_kind: str
    target_id: UUID
    from_status: str | None = None
    to_status: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == CascadeStatus.APPLIED
