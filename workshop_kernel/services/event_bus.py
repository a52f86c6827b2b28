"""
Event publishers -- adapters for the ``EventPublisher`` port.

Responsibility:
    ``InMemoryEventBus`` dispatches WorkflowEvents to subscribed handlers in
    process.  ``RecordingEventPublisher`` appends every event to the
    ``workflow_events`` table inside the caller's transaction and can forward
    to a downstream publisher.

Architecture position:
    Kernel > Services -- imperative shell.  WorkflowCoordinator publishes
    through the port and never sees which adapter it got.

Invariants enforced:
    - A failing handler never breaks publication: the error is logged with
      its traceback and the remaining handlers still run.
    - Recorded events are flushed, never committed.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workshop_kernel.domain.events import WorkflowEvent, WorkflowEventType
from workshop_kernel.domain.ports import EventPublisher
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.workflow_event import WorkflowEventRecord

logger = get_logger("services.event_bus")

EventHandler = Callable[[WorkflowEvent], None]


class InMemoryEventBus:
    """
    Synchronous in-process publish/subscribe.

    Contract:
        ``subscribe(event_type, handler)`` registers ``handler`` for one
        event type; ``event_type=None`` subscribes to every event.  Handlers
        run in subscription order, type-specific ones first.

    Guarantees:
        - Subscribing the same handler twice for a type is a no-op.
        - ``published`` keeps every event in publication order until
          ``clear()`` drains it.  Long-lived processes that keep a bus
          must drain it themselves.
    """

    def __init__(self) -> None:
        self._handlers: dict[WorkflowEventType | None, list[EventHandler]] = defaultdict(list)
        self.published: list[WorkflowEvent] = []

    def subscribe(
        self,
        event_type: WorkflowEventType | None,
        handler: EventHandler,
    ) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            logger.warning(
                "handler_already_subscribed",
                extra={"event_type": event_type, "handler": repr(handler)},
            )
            return
        handlers.append(handler)

    def unsubscribe(
        self,
        event_type: WorkflowEventType | None,
        handler: EventHandler,
    ) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler not in handlers:
            logger.warning(
                "handler_not_subscribed",
                extra={"event_type": event_type, "handler": repr(handler)},
            )
            return
        handlers.remove(handler)

    def publish(self, event: WorkflowEvent) -> None:
        self.published.append(event)
        handlers = [*self._handlers.get(event.event_type, []), *self._handlers.get(None, [])]
        if not handlers:
            logger.debug("event_unhandled", extra={"event_type": event.event_type})
            return

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.error(
                    "event_handler_failed",
                    extra={
                        "event_type": event.event_type,
                        "event_id": str(event.event_id),
                        "handler": repr(handler),
                    },
                    exc_info=True,
                )

    def events_of_type(self, event_type: WorkflowEventType) -> list[WorkflowEvent]:
        return [e for e in self.published if e.event_type == event_type]

    def clear(self) -> list[WorkflowEvent]:
        """Drop the publication history and return what was in it."""
        drained, self.published = self.published, []
        return drained


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class RecordingEventPublisher:
    """Persist each event to ``workflow_events``, then forward it."""

    def __init__(self, session: Session, downstream: EventPublisher | None = None):
        self.session = session
        self._downstream = downstream

    def publish(self, event: WorkflowEvent) -> None:
        self.session.add(
            WorkflowEventRecord(
                id=event.event_id,
                event_type=event.event_type.value,
                aggregate_kind=event.aggregate_kind,
                aggregate_id=event.aggregate_id,
                occurred_at=event.occurred_at,
                is_warning=event.is_warning,
                payload=_jsonable(event.payload),
            )
        )
        self.session.flush()
        if self._downstream is not None:
            self._downstream.publish(event)

    def list_events(self, aggregate_id: UUID | None = None) -> list[WorkflowEventRecord]:
        stmt = select(WorkflowEventRecord).order_by(WorkflowEventRecord.occurred_at)
        if aggregate_id is not None:
            stmt = stmt.where(WorkflowEventRecord.aggregate_id == aggregate_id)
        return list(self.session.execute(stmt).scalars())
