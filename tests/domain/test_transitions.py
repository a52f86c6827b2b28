"""
Tests for the status transition tables (workshop_kernel.domain.transitions).

Covers:
- Every status of every kind is a key in its table
- validate_transition raises the right error type per kind
- Final states, including DELIVERED keeping its return edge
"""

import pytest

from workshop_kernel.domain.transitions import (
    BUDGET_TRANSITIONS,
    SERVICE_EXECUTION_TRANSITIONS,
    SERVICE_ORDER_TRANSITIONS,
    BudgetStatus,
    EntityKind,
    ServiceExecutionStatus,
    ServiceOrderStatus,
    allowed_targets,
    final_states,
    is_final_state,
    is_transition_allowed,
    validate_transition,
)
from workshop_kernel.exceptions import (
    InvalidBudgetStatusError,
    InvalidStatusTransitionError,
)


# =============================================================================
# Table completeness
# =============================================================================


class TestTableShape:
    """Each table has one entry per status."""

    @pytest.mark.parametrize(
        "table, status_enum",
        [
            (SERVICE_ORDER_TRANSITIONS, ServiceOrderStatus),
            (BUDGET_TRANSITIONS, BudgetStatus),
            (SERVICE_EXECUTION_TRANSITIONS, ServiceExecutionStatus),
        ],
    )
    def test_every_status_is_a_key(self, table, status_enum):
        assert set(table) == set(status_enum)

    @pytest.mark.parametrize(
        "table, status_enum",
        [
            (SERVICE_ORDER_TRANSITIONS, ServiceOrderStatus),
            (BUDGET_TRANSITIONS, BudgetStatus),
            (SERVICE_EXECUTION_TRANSITIONS, ServiceExecutionStatus),
        ],
    )
    def test_targets_are_same_kind(self, table, status_enum):
        for targets in table.values():
            assert all(isinstance(t, status_enum) for t in targets)

    def test_no_self_loops(self):
        for table in (SERVICE_ORDER_TRANSITIONS, BUDGET_TRANSITIONS, SERVICE_EXECUTION_TRANSITIONS):
            for source, targets in table.items():
                assert source not in targets


# =============================================================================
# Service order edges
# =============================================================================


class TestServiceOrderEdges:
    @pytest.mark.parametrize(
        "source, target",
        [
            (ServiceOrderStatus.REQUESTED, ServiceOrderStatus.RECEIVED),
            (ServiceOrderStatus.REQUESTED, ServiceOrderStatus.REJECTED),
            (ServiceOrderStatus.REQUESTED, ServiceOrderStatus.CANCELLED),
            (ServiceOrderStatus.RECEIVED, ServiceOrderStatus.IN_DIAGNOSIS),
            (ServiceOrderStatus.IN_DIAGNOSIS, ServiceOrderStatus.AWAITING_APPROVAL),
            (ServiceOrderStatus.AWAITING_APPROVAL, ServiceOrderStatus.APPROVED),
            (ServiceOrderStatus.AWAITING_APPROVAL, ServiceOrderStatus.REJECTED),
            (ServiceOrderStatus.APPROVED, ServiceOrderStatus.IN_EXECUTION),
            (ServiceOrderStatus.SCHEDULED, ServiceOrderStatus.IN_EXECUTION),
            (ServiceOrderStatus.IN_EXECUTION, ServiceOrderStatus.FINISHED),
            (ServiceOrderStatus.FINISHED, ServiceOrderStatus.DELIVERED),
            (ServiceOrderStatus.DELIVERED, ServiceOrderStatus.REJECTED),
        ],
    )
    def test_allowed(self, source, target):
        assert is_transition_allowed(EntityKind.SERVICE_ORDER, source, target)
        validate_transition(EntityKind.SERVICE_ORDER, source, target)

    @pytest.mark.parametrize(
        "source, target",
        [
            (ServiceOrderStatus.REQUESTED, ServiceOrderStatus.APPROVED),
            (ServiceOrderStatus.IN_DIAGNOSIS, ServiceOrderStatus.APPROVED),
            (ServiceOrderStatus.APPROVED, ServiceOrderStatus.FINISHED),
            (ServiceOrderStatus.AWAITING_APPROVAL, ServiceOrderStatus.CANCELLED),
            (ServiceOrderStatus.CANCELLED, ServiceOrderStatus.RECEIVED),
            (ServiceOrderStatus.REJECTED, ServiceOrderStatus.APPROVED),
        ],
    )
    def test_rejected(self, source, target):
        assert not is_transition_allowed(EntityKind.SERVICE_ORDER, source, target)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            validate_transition(EntityKind.SERVICE_ORDER, source, target)

        err = exc_info.value
        assert type(err) is InvalidStatusTransitionError
        assert err.code == "INVALID_STATUS_TRANSITION"
        assert err.entity_kind == "service_order"
        assert err.from_status == source.value
        assert err.to_status == target.value
        assert set(err.allowed) == {s.value for s in allowed_targets(EntityKind.SERVICE_ORDER, source)}


# =============================================================================
# Budget and execution edges
# =============================================================================


class TestBudgetEdges:
    def test_sent_can_be_decided_directly(self):
        assert is_transition_allowed(EntityKind.BUDGET, BudgetStatus.SENT, BudgetStatus.APPROVED)
        assert is_transition_allowed(EntityKind.BUDGET, BudgetStatus.SENT, BudgetStatus.REJECTED)

    def test_budget_miss_raises_budget_error(self):
        with pytest.raises(InvalidBudgetStatusError) as exc_info:
            validate_transition(EntityKind.BUDGET, BudgetStatus.GENERATED, BudgetStatus.APPROVED)
        assert exc_info.value.code == "INVALID_BUDGET_STATUS"
        assert exc_info.value.allowed == ("sent",)

    def test_budget_error_is_a_transition_error(self):
        with pytest.raises(InvalidStatusTransitionError):
            validate_transition(EntityKind.BUDGET, BudgetStatus.APPROVED, BudgetStatus.SENT)


class TestExecutionEdges:
    def test_linear_path(self):
        assert allowed_targets(
            EntityKind.SERVICE_EXECUTION, ServiceExecutionStatus.ASSIGNED
        ) == frozenset({ServiceExecutionStatus.IN_PROGRESS})
        assert allowed_targets(
            EntityKind.SERVICE_EXECUTION, ServiceExecutionStatus.IN_PROGRESS
        ) == frozenset({ServiceExecutionStatus.COMPLETED})

    def test_cannot_skip_in_progress(self):
        with pytest.raises(InvalidStatusTransitionError):
            validate_transition(
                EntityKind.SERVICE_EXECUTION,
                ServiceExecutionStatus.ASSIGNED,
                ServiceExecutionStatus.COMPLETED,
            )


# =============================================================================
# Final states
# =============================================================================


class TestFinalStates:
    def test_order_final_states(self):
        assert final_states(EntityKind.SERVICE_ORDER) == frozenset({
            ServiceOrderStatus.DELIVERED,
            ServiceOrderStatus.CANCELLED,
            ServiceOrderStatus.REJECTED,
        })

    def test_delivered_is_final_but_keeps_return_edge(self):
        assert is_final_state(EntityKind.SERVICE_ORDER, ServiceOrderStatus.DELIVERED)
        assert allowed_targets(
            EntityKind.SERVICE_ORDER, ServiceOrderStatus.DELIVERED
        ) == frozenset({ServiceOrderStatus.REJECTED})

    @pytest.mark.parametrize(
        "kind, status",
        [
            (EntityKind.SERVICE_ORDER, ServiceOrderStatus.CANCELLED),
            (EntityKind.SERVICE_ORDER, ServiceOrderStatus.REJECTED),
            (EntityKind.BUDGET, BudgetStatus.APPROVED),
            (EntityKind.BUDGET, BudgetStatus.REJECTED),
            (EntityKind.SERVICE_EXECUTION, ServiceExecutionStatus.COMPLETED),
        ],
    )
    def test_terminal_states_have_no_targets(self, kind, status):
        assert is_final_state(kind, status)
        assert allowed_targets(kind, status) == frozenset()

    def test_non_final(self):
        assert not is_final_state(EntityKind.SERVICE_ORDER, ServiceOrderStatus.FINISHED)
        assert not is_final_state(EntityKind.BUDGET, BudgetStatus.SENT)
