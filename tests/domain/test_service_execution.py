"""Tests for the ServiceExecution lifecycle (workshop_kernel.domain.service_execution)."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from workshop_kernel.domain.service_execution import ServiceExecution
from workshop_kernel.domain.transitions import ServiceExecutionStatus
from workshop_kernel.exceptions import (
    InvalidStatusTransitionError,
    MechanicNotAssignedError,
)


def _make_execution(clock, mechanic_id=None) -> ServiceExecution:
    return ServiceExecution.create(
        service_order_id=uuid4(),
        mechanic_id=mechanic_id,
        clock=clock,
    )


class TestStart:
    def test_start_records_started_at(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        deterministic_clock.advance(120)
        execution.start()
        assert execution.status == ServiceExecutionStatus.IN_PROGRESS
        assert execution.started_at == deterministic_clock.now()
        assert execution.is_active

    def test_start_without_mechanic_rejected(self, deterministic_clock):
        execution = _make_execution(deterministic_clock)
        with pytest.raises(MechanicNotAssignedError) as exc_info:
            execution.start()
        assert exc_info.value.execution_id == str(execution.id)
        assert execution.status == ServiceExecutionStatus.ASSIGNED
        assert execution.started_at is None

    def test_assign_then_start(self, deterministic_clock):
        execution = _make_execution(deterministic_clock)
        mechanic = uuid4()
        execution.assign_mechanic(mechanic)
        execution.start()
        assert execution.mechanic_id == mechanic

    def test_start_twice_rejected(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        execution.start()
        with pytest.raises(InvalidStatusTransitionError):
            execution.start()


class TestComplete:
    def test_complete_records_hours_and_notes(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        execution.start()
        deterministic_clock.advance_by(timedelta(minutes=90))
        execution.complete(Decimal("1.5"), notes="Pads replaced")

        assert execution.status == ServiceExecutionStatus.COMPLETED
        assert execution.actual_hours == Decimal("1.5")
        assert execution.completion_notes == "Pads replaced"
        assert execution.completed_at == deterministic_clock.now()
        assert execution.duration_minutes == 90
        assert not execution.is_active

    def test_float_hours_converted_exactly(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        execution.start()
        execution.complete(2.25)
        assert execution.actual_hours == Decimal("2.25")

    def test_complete_before_start_rejected(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        with pytest.raises(InvalidStatusTransitionError):
            execution.complete(1)
        assert execution.actual_hours is None
        assert execution.completed_at is None

    def test_negative_hours_rejected(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        execution.start()
        with pytest.raises(ValueError):
            execution.complete(-1)
        assert execution.status == ServiceExecutionStatus.IN_PROGRESS

    def test_duration_unknown_until_complete(self, deterministic_clock):
        execution = _make_execution(deterministic_clock, mechanic_id=uuid4())
        assert execution.duration_minutes is None
        execution.start()
        assert execution.duration_minutes is None
