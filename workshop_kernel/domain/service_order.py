"""
ServiceOrder lifecycle (``workshop_kernel.domain.service_order``).

Responsibility:
    Aggregate root for a repair request.  Owns the order's status and the
    dates/reason that only specific transitions may set.  Every transition is
    validated against ``SERVICE_ORDER_TRANSITIONS``.

Architecture position:
    Kernel > Domain -- pure in-memory state machine, zero I/O.

Invariants enforced:
    - Status changes only through the methods below (no public setters).
    - ``delivery_date`` is set only by the DELIVERED transition.
    - ``cancellation_reason`` is set only by ``cancel`` (or an administrative
      ``update_status`` to CANCELLED).
    - A rejected transition leaves every field untouched.

Failure modes:
    - InvalidStatusTransitionError on any illegal move.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.transitions import (
    EntityKind,
    ServiceOrderStatus,
    allowed_targets,
    is_final_state,
    validate_transition,
)
from workshop_kernel.exceptions import InvalidStatusTransitionError


class ServiceOrder:
    """
    A vehicle repair order moving from intake to delivery.

    Contract:
        Created in REQUESTED (client-initiated, ``create``) or RECEIVED
        (employee-initiated, ``create_received``).  Budgets and executions
        refer back to it by ``id``; it never holds references to them.

    Guarantees:
        - Every successful transition stamps ``updated_at`` from the clock.
        - ``can_add_budget_items()`` is true only in IN_DIAGNOSIS.
        - ``can_be_approved_or_rejected()`` is true only in AWAITING_APPROVAL.
    """

    def __init__(
        self,
        *,
        client_id: UUID,
        vehicle_id: UUID,
        status: ServiceOrderStatus = ServiceOrderStatus.REQUESTED,
        id: UUID | None = None,
        request_date: datetime | None = None,
        delivery_date: datetime | None = None,
        cancellation_reason: str | None = None,
        notes: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        clock: Clock | None = None,
    ):
        self._clock = clock or SystemClock()
        now = self._clock.now()
        self._id = id or uuid4()
        self._status = ServiceOrderStatus(status)
        self._client_id = client_id
        self._vehicle_id = vehicle_id
        self._request_date = request_date or now
        self._delivery_date = delivery_date
        self._cancellation_reason = cancellation_reason
        self._notes = notes
        self._created_at = created_at or now
        self._updated_at = updated_at or self._created_at

    @classmethod
    def create(
        cls,
        client_id: UUID,
        vehicle_id: UUID,
        notes: str | None = None,
        clock: Clock | None = None,
    ) -> ServiceOrder:
        """New client-initiated order in REQUESTED."""
        return cls(
            client_id=client_id,
            vehicle_id=vehicle_id,
            status=ServiceOrderStatus.REQUESTED,
            notes=notes,
            clock=clock,
        )

    @classmethod
    def create_received(
        cls,
        client_id: UUID,
        vehicle_id: UUID,
        notes: str | None = None,
        clock: Clock | None = None,
    ) -> ServiceOrder:
        """New employee-initiated order, already in RECEIVED."""
        return cls(
            client_id=client_id,
            vehicle_id=vehicle_id,
            status=ServiceOrderStatus.RECEIVED,
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
    def status(self) -> ServiceOrderStatus:
        return self._status

    @property
    def client_id(self) -> UUID:
        return self._client_id

    @property
    def vehicle_id(self) -> UUID:
        return self._vehicle_id

    @property
    def request_date(self) -> datetime:
        return self._request_date

    @property
    def delivery_date(self) -> datetime | None:
        return self._delivery_date

    @property
    def cancellation_reason(self) -> str | None:
        return self._cancellation_reason

    @property
    def notes(self) -> str | None:
        return self._notes

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, target: ServiceOrderStatus) -> datetime:
        validate_transition(EntityKind.SERVICE_ORDER, self._status, target)
        now = self._clock.now()
        self._status = target
        self._updated_at = now
        return now

    def mark_received(self) -> None:
        self._transition(ServiceOrderStatus.RECEIVED)

    def mark_in_diagnosis(self) -> None:
        self._transition(ServiceOrderStatus.IN_DIAGNOSIS)

    def mark_awaiting_approval(self) -> None:
        self._transition(ServiceOrderStatus.AWAITING_APPROVAL)

    def mark_approved(self) -> None:
        self._transition(ServiceOrderStatus.APPROVED)

    def mark_rejected(self) -> None:
        """Legal from REQUESTED, AWAITING_APPROVAL and DELIVERED."""
        self._transition(ServiceOrderStatus.REJECTED)

    def mark_in_execution(self) -> None:
        """Legal from APPROVED or SCHEDULED."""
        self._transition(ServiceOrderStatus.IN_EXECUTION)

    def mark_finished(self) -> None:
        self._transition(ServiceOrderStatus.FINISHED)

    def mark_delivered(self) -> None:
        """Hand the vehicle back; records ``delivery_date``."""
        self._delivery_date = self._transition(ServiceOrderStatus.DELIVERED)

    def cancel(self, reason: str) -> None:
        """Cancel before diagnosis completes and record why.

        Legal from REQUESTED, RECEIVED and IN_DIAGNOSIS only.
        """
        self._transition(ServiceOrderStatus.CANCELLED)
        self._cancellation_reason = reason

    def update_status(
        self,
        target: ServiceOrderStatus,
        reason: str | None = None,
    ) -> None:
        """Externally driven transition through the same table.

        Used for administrative overrides.  DELIVERED still stamps
        ``delivery_date`` and CANCELLED still records ``reason``.

        Raises:
            InvalidStatusTransitionError: If ``target`` is not a service
                order status, or not a legal edge from the current one.
        """
        try:
            target = ServiceOrderStatus(target)
        except ValueError:
            raise InvalidStatusTransitionError(
                entity_kind=EntityKind.SERVICE_ORDER.value,
                from_status=self._status.value,
                to_status=str(target),
                allowed=tuple(sorted(s.value for s in self.allowed_next_statuses())),
            ) from None
        now = self._transition(target)
        if target == ServiceOrderStatus.DELIVERED:
            self._delivery_date = now
        elif target == ServiceOrderStatus.CANCELLED:
            self._cancellation_reason = reason

    def update_notes(self, notes: str | None) -> None:
        self._notes = notes
        self._updated_at = self._clock.now()

    # ------------------------------------------------------------------
    # Capability predicates
    # ------------------------------------------------------------------

    def can_add_budget_items(self) -> bool:
        return self._status == ServiceOrderStatus.IN_DIAGNOSIS

    def can_be_approved_or_rejected(self) -> bool:
        return self._status == ServiceOrderStatus.AWAITING_APPROVAL

    def is_in_final_state(self) -> bool:
        return is_final_state(EntityKind.SERVICE_ORDER, self._status)

    def allowed_next_statuses(self) -> frozenset[ServiceOrderStatus]:
        return allowed_targets(EntityKind.SERVICE_ORDER, self._status)

    def __repr__(self) -> str:
        return f"<ServiceOrder {self._id} {self._status.value}>"
