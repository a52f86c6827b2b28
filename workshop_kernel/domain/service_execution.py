"""
ServiceExecution lifecycle (``workshop_kernel.domain.service_execution``).

Responsibility:
    The hands-on repair work for a service order, carried out by one
    mechanic: ASSIGNED -> IN_PROGRESS -> COMPLETED.

Architecture position:
    Kernel > Domain -- pure in-memory state machine, zero I/O.

Invariants enforced:
    - Transitions follow ``SERVICE_EXECUTION_TRANSITIONS``.
    - ``start()`` requires an assigned mechanic.
    - ``actual_hours`` and ``completion_notes`` are set only by ``complete``.

Uniqueness (one active execution per order) is a coordinator rule; the
entity does not know about its siblings.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.transitions import (
    EntityKind,
    ServiceExecutionStatus,
    validate_transition,
)
from workshop_kernel.exceptions import MechanicNotAssignedError


class ServiceExecution:
    """Repair work assigned to a mechanic for one service order."""

    def __init__(
        self,
        *,
        service_order_id: UUID,
        mechanic_id: UUID | None = None,
        status: ServiceExecutionStatus = ServiceExecutionStatus.ASSIGNED,
        id: UUID | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        actual_hours: Decimal | None = None,
        completion_notes: str | None = None,
        notes: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        clock: Clock | None = None,
    ):
        self._clock = clock or SystemClock()
        now = self._clock.now()
        self._id = id or uuid4()
        self._status = ServiceExecutionStatus(status)
        self._service_order_id = service_order_id
        self._mechanic_id = mechanic_id
        self._started_at = started_at
        self._completed_at = completed_at
        self._actual_hours = actual_hours
        self._completion_notes = completion_notes
        self._notes = notes
        self._created_at = created_at or now
        self._updated_at = updated_at or self._created_at

    @classmethod
    def create(
        cls,
        service_order_id: UUID,
        mechanic_id: UUID | None = None,
        notes: str | None = None,
        clock: Clock | None = None,
    ) -> ServiceExecution:
        """New execution in ASSIGNED."""
        return cls(
            service_order_id=service_order_id,
            mechanic_id=mechanic_id,
            notes=notes,
            clock=clock,
        )

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def status(self) -> ServiceExecutionStatus:
        return self._status

    @property
    def service_order_id(self) -> UUID:
        return self._service_order_id

    @property
    def mechanic_id(self) -> UUID | None:
        return self._mechanic_id

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def completed_at(self) -> datetime | None:
        return self._completed_at

    @property
    def actual_hours(self) -> Decimal | None:
        return self._actual_hours

    @property
    def completion_notes(self) -> str | None:
        return self._completion_notes

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
    def is_active(self) -> bool:
        return self._status != ServiceExecutionStatus.COMPLETED

    @property
    def duration_minutes(self) -> int | None:
        """Wall-clock minutes between start and completion, if both happened."""
        if self._started_at is None or self._completed_at is None:
            return None
        return round((self._completed_at - self._started_at).total_seconds() / 60)

    def assign_mechanic(self, mechanic_id: UUID) -> None:
        self._mechanic_id = mechanic_id
        self._updated_at = self._clock.now()

    def start(self) -> None:
        """ASSIGNED -> IN_PROGRESS.

        Raises:
            InvalidStatusTransitionError: If not ASSIGNED.
            MechanicNotAssignedError: If nobody is assigned yet.
        """
        validate_transition(
            EntityKind.SERVICE_EXECUTION, self._status, ServiceExecutionStatus.IN_PROGRESS
        )
        if self._mechanic_id is None:
            raise MechanicNotAssignedError(str(self._id))
        now = self._clock.now()
        self._status = ServiceExecutionStatus.IN_PROGRESS
        self._started_at = now
        self._updated_at = now

    def complete(self, actual_hours: Decimal | int | float, notes: str | None = None) -> None:
        """IN_PROGRESS -> COMPLETED, recording hours worked and notes.

        Raises:
            InvalidStatusTransitionError: If not IN_PROGRESS.
            ValueError: If ``actual_hours`` is negative.
        """
        validate_transition(
            EntityKind.SERVICE_EXECUTION, self._status, ServiceExecutionStatus.COMPLETED
        )
        hours = Decimal(str(actual_hours))
        if hours < 0:
            raise ValueError(f"actual_hours cannot be negative, got {actual_hours}")
        now = self._clock.now()
        self._status = ServiceExecutionStatus.COMPLETED
        self._completed_at = now
        self._actual_hours = hours
        self._completion_notes = notes
        self._updated_at = now

    def __repr__(self) -> str:
        return f"<ServiceExecution {self._id} {self._status.value}>"
