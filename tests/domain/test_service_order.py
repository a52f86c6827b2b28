"""Tests for the ServiceOrder lifecycle (workshop_kernel.domain.service_order)."""

from datetime import timedelta
from uuid import uuid4

import pytest

from workshop_kernel.domain.service_order import ServiceOrder
from workshop_kernel.domain.transitions import ServiceOrderStatus
from workshop_kernel.exceptions import InvalidStatusTransitionError


@pytest.fixture
def clock(deterministic_clock):
    return deterministic_clock


# =============================================================================
# Creation
# =============================================================================


class TestCreation:
    def test_create_starts_requested(self, clock):
        order = ServiceOrder.create(client_id=uuid4(), vehicle_id=uuid4(), clock=clock)
        assert order.status == ServiceOrderStatus.REQUESTED
        assert order.request_date == clock.now()
        assert order.created_at == order.updated_at == clock.now()
        assert order.delivery_date is None
        assert order.cancellation_reason is None

    def test_create_received_starts_received(self, clock):
        order = ServiceOrder.create_received(
            client_id=uuid4(), vehicle_id=uuid4(), notes="walk-in", clock=clock
        )
        assert order.status == ServiceOrderStatus.RECEIVED
        assert order.notes == "walk-in"


# =============================================================================
# Happy path
# =============================================================================


class TestHappyPath:
    def test_full_lifecycle(self, clock):
        order = ServiceOrder.create(client_id=uuid4(), vehicle_id=uuid4(), clock=clock)
        for step, expected in [
            (order.mark_received, ServiceOrderStatus.RECEIVED),
            (order.mark_in_diagnosis, ServiceOrderStatus.IN_DIAGNOSIS),
            (order.mark_awaiting_approval, ServiceOrderStatus.AWAITING_APPROVAL),
            (order.mark_approved, ServiceOrderStatus.APPROVED),
            (order.mark_in_execution, ServiceOrderStatus.IN_EXECUTION),
            (order.mark_finished, ServiceOrderStatus.FINISHED),
        ]:
            clock.advance(60)
            step()
            assert order.status == expected
            assert order.updated_at == clock.now()

        clock.advance(60)
        order.mark_delivered()
        assert order.status == ServiceOrderStatus.DELIVERED
        assert order.delivery_date == clock.now()
        assert order.is_in_final_state()

    def test_delivered_can_be_returned(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.DELIVERED)
        order.mark_rejected()
        assert order.status == ServiceOrderStatus.REJECTED

    def test_scheduled_order_can_start(self, clock):
        order = ServiceOrder(
            client_id=uuid4(),
            vehicle_id=uuid4(),
            status=ServiceOrderStatus.SCHEDULED,
            clock=clock,
        )
        order.mark_in_execution()
        assert order.status == ServiceOrderStatus.IN_EXECUTION


# =============================================================================
# Illegal transitions
# =============================================================================


class TestIllegalTransitions:
    def test_approve_from_in_diagnosis_rejected(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.IN_DIAGNOSIS)
        before = order.updated_at
        clock.advance(10)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            order.mark_approved()

        assert exc_info.value.from_status == "in_diagnosis"
        assert exc_info.value.to_status == "approved"
        assert order.status == ServiceOrderStatus.IN_DIAGNOSIS
        assert order.updated_at == before

    def test_cannot_deliver_twice(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.DELIVERED)
        delivered_at = order.delivery_date
        clock.advance(10)
        with pytest.raises(InvalidStatusTransitionError):
            order.mark_delivered()
        assert order.delivery_date == delivered_at

    @pytest.mark.parametrize(
        "status",
        [
            ServiceOrderStatus.AWAITING_APPROVAL,
            ServiceOrderStatus.APPROVED,
            ServiceOrderStatus.IN_EXECUTION,
            ServiceOrderStatus.FINISHED,
        ],
    )
    def test_cancel_only_before_diagnosis_completes(self, clock, order_in_status, status):
        order = order_in_status(status)
        with pytest.raises(InvalidStatusTransitionError):
            order.cancel("too late")
        assert order.cancellation_reason is None


# =============================================================================
# Cancellation and administrative updates
# =============================================================================


class TestCancellation:
    @pytest.mark.parametrize(
        "status",
        [
            ServiceOrderStatus.REQUESTED,
            ServiceOrderStatus.RECEIVED,
            ServiceOrderStatus.IN_DIAGNOSIS,
        ],
    )
    def test_cancel_records_reason(self, clock, order_in_status, status):
        order = order_in_status(status)
        order.cancel("client withdrew")
        assert order.status == ServiceOrderStatus.CANCELLED
        assert order.cancellation_reason == "client withdrew"
        assert order.allowed_next_statuses() == frozenset()


class TestUpdateStatus:
    def test_update_to_delivered_sets_delivery_date(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.FINISHED)
        clock.advance_by(timedelta(hours=2))
        order.update_status(ServiceOrderStatus.DELIVERED)
        assert order.delivery_date == clock.now()

    def test_update_to_cancelled_records_reason(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.RECEIVED)
        order.update_status(ServiceOrderStatus.CANCELLED, reason="duplicate order")
        assert order.cancellation_reason == "duplicate order"

    def test_update_accepts_raw_value(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.REQUESTED)
        order.update_status("received")
        assert order.status == ServiceOrderStatus.RECEIVED

    def test_update_uses_same_table(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.REQUESTED)
        with pytest.raises(InvalidStatusTransitionError):
            order.update_status(ServiceOrderStatus.FINISHED)

    def test_unknown_status_value_rejected(self, clock, order_in_status):
        order = order_in_status(ServiceOrderStatus.RECEIVED)
        before = order.updated_at
        clock.advance(60)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            order.update_status("waiting_for_parts")

        assert exc_info.value.from_status == "received"
        assert exc_info.value.to_status == "waiting_for_parts"
        assert exc_info.value.allowed == ("cancelled", "in_diagnosis")
        assert order.status == ServiceOrderStatus.RECEIVED
        assert order.updated_at == before


# =============================================================================
# Predicates
# =============================================================================


class TestPredicates:
    @pytest.mark.parametrize("status", list(ServiceOrderStatus))
    def test_can_add_budget_items_only_in_diagnosis(self, clock, status):
        order = ServiceOrder(client_id=uuid4(), vehicle_id=uuid4(), status=status, clock=clock)
        assert order.can_add_budget_items() == (status == ServiceOrderStatus.IN_DIAGNOSIS)

    @pytest.mark.parametrize("status", list(ServiceOrderStatus))
    def test_can_be_approved_or_rejected_only_awaiting(self, clock, status):
        order = ServiceOrder(client_id=uuid4(), vehicle_id=uuid4(), status=status, clock=clock)
        assert order.can_be_approved_or_rejected() == (
            status == ServiceOrderStatus.AWAITING_APPROVAL
        )

    def test_update_notes_stamps_updated_at(self, clock, order_in_status):
        order = order_in_status()
        clock.advance(5)
        order.update_notes("noise from front axle")
        assert order.notes == "noise from front axle"
        assert order.updated_at == clock.now()
