"""
Pytest fixtures for the workshop kernel test suite.

Provides:
- Structured-logging fixtures (JSON capture)
- A fresh database per test (in-memory SQLite unless overridden)
- Deterministic clock, repositories, ledger, event bus and coordinator
- Helpers that persist aggregates in a given status

Environment Variables:
- WORKSHOP_TEST_DATABASE_URL: database URL for the suite.
  Defaults to ``sqlite:///:memory:``.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from workshop_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from workshop_kernel.domain.budget import Budget
from workshop_kernel.domain.clock import DeterministicClock
from workshop_kernel.domain.service_order import ServiceOrder
from workshop_kernel.domain.transitions import ServiceOrderStatus
from workshop_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workshop_kernel.services.event_bus import InMemoryEventBus
from workshop_kernel.services.repositories import (
    SqlBudgetRepository,
    SqlServiceExecutionRepository,
    SqlServiceOrderRepository,
    SqlStockRepository,
)
from workshop_kernel.services.retry_service import RetryPolicy
from workshop_kernel.services.stock_ledger import StockLedger
from workshop_kernel.services.workflow_coordinator import WorkflowCoordinator

DEFAULT_TEST_DATABASE_URL = "sqlite:///:memory:"

# Status path from RECEIVED to each reachable order status
_ORDER_PATHS: dict[ServiceOrderStatus, tuple[str, ...]] = {
    ServiceOrderStatus.REQUESTED: (),
    ServiceOrderStatus.RECEIVED: ("mark_received",),
    ServiceOrderStatus.IN_DIAGNOSIS: ("mark_received", "mark_in_diagnosis"),
    ServiceOrderStatus.AWAITING_APPROVAL: (
        "mark_received",
        "mark_in_diagnosis",
        "mark_awaiting_approval",
    ),
    ServiceOrderStatus.APPROVED: (
        "mark_received",
        "mark_in_diagnosis",
        "mark_awaiting_approval",
        "mark_approved",
    ),
    ServiceOrderStatus.IN_EXECUTION: (
        "mark_received",
        "mark_in_diagnosis",
        "mark_awaiting_approval",
        "mark_approved",
        "mark_in_execution",
    ),
    ServiceOrderStatus.FINISHED: (
        "mark_received",
        "mark_in_diagnosis",
        "mark_awaiting_approval",
        "mark_approved",
        "mark_in_execution",
        "mark_finished",
    ),
    ServiceOrderStatus.DELIVERED: (
        "mark_received",
        "mark_in_diagnosis",
        "mark_awaiting_approval",
        "mark_approved",
        "mark_in_execution",
        "mark_finished",
        "mark_delivered",
    ),
}


def make_order(clock, status: ServiceOrderStatus = ServiceOrderStatus.REQUESTED) -> ServiceOrder:
    """Build an in-memory order walked to ``status`` through legal transitions."""
    order = ServiceOrder.create(client_id=uuid4(), vehicle_id=uuid4(), clock=clock)
    for step in _ORDER_PATHS[status]:
        getattr(order, step)()
    return order


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workshop_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, coordinator):
            coordinator.send_budget(budget_id)
            logs = captured_logs()
            assert any(r["message"] == "budget_sent" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workshop_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def get_database_url() -> str:
    return os.environ.get("WORKSHOP_TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh schema per test; the engine is torn down afterwards."""
    eng = init_engine_from_url(get_database_url())
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Session for one test; anything left uncommitted is rolled back."""
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


# =============================================================================
# Clock, retry, repositories
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def order_in_status(deterministic_clock):
    """Build an unsaved order walked to the given status."""

    def _make(status: ServiceOrderStatus = ServiceOrderStatus.REQUESTED) -> ServiceOrder:
        return make_order(deterministic_clock, status)

    return _make


@pytest.fixture
def sleeps() -> list[float]:
    """Seconds passed to the retry policy's sleep, in call order."""
    return []


@pytest.fixture
def retry_policy(sleeps):
    """Default-shaped policy that records instead of sleeping."""
    return RetryPolicy(
        initial_delay_ms=10,
        max_delay_ms=40,
        max_attempts=3,
        sleep=sleeps.append,
    )


@pytest.fixture
def order_repo(session, deterministic_clock):
    return SqlServiceOrderRepository(session, deterministic_clock)


@pytest.fixture
def budget_repo(session, deterministic_clock):
    return SqlBudgetRepository(session, deterministic_clock)


@pytest.fixture
def execution_repo(session, deterministic_clock):
    return SqlServiceExecutionRepository(session, deterministic_clock)


@pytest.fixture
def stock_repo(session, deterministic_clock):
    return SqlStockRepository(session, deterministic_clock)


@pytest.fixture
def stock_ledger(stock_repo, retry_policy, deterministic_clock):
    return StockLedger(stock_repo, retry_policy, deterministic_clock)


@pytest.fixture
def event_bus():
    return InMemoryEventBus()


@pytest.fixture
def coordinator(
    order_repo,
    budget_repo,
    execution_repo,
    stock_ledger,
    event_bus,
    retry_policy,
    deterministic_clock,
):
    return WorkflowCoordinator(
        service_orders=order_repo,
        budgets=budget_repo,
        executions=execution_repo,
        stock_ledger=stock_ledger,
        publisher=event_bus,
        retry_policy=retry_policy,
        clock=deterministic_clock,
    )


# =============================================================================
# Persisted aggregates
# =============================================================================


@pytest.fixture
def create_order(order_repo, deterministic_clock):
    """Persist a service order already in the requested status."""

    def _create(status: ServiceOrderStatus = ServiceOrderStatus.IN_DIAGNOSIS) -> ServiceOrder:
        if status == ServiceOrderStatus.SCHEDULED:
            order = ServiceOrder(
                client_id=uuid4(),
                vehicle_id=uuid4(),
                status=status,
                clock=deterministic_clock,
            )
        else:
            order = make_order(deterministic_clock, status)
        return order_repo.save(order)

    return _create


@pytest.fixture
def create_budget(budget_repo, create_order, deterministic_clock):
    """Persist a GENERATED budget, creating its order when none is given."""

    def _create(
        order: ServiceOrder | None = None,
        validity_period_days: int = 7,
    ) -> Budget:
        order = order or create_order(ServiceOrderStatus.IN_DIAGNOSIS)
        budget = Budget.create(
            service_order_id=order.id,
            client_id=order.client_id,
            validity_period_days=validity_period_days,
            clock=deterministic_clock,
        )
        return budget_repo.save(budget)

    return _create


@pytest.fixture
def create_stock_item(stock_ledger):
    """Register a stock item with an opening balance."""

    def _create(initial_stock: int = 10, sku: str | None = None, min_stock_level: int = 0):
        return stock_ledger.register_item(
            sku=sku or f"SKU-{uuid4().hex[:8]}",
            name="Brake pad",
            initial_stock=initial_stock,
            min_stock_level=min_stock_level,
            unit_cost=Decimal("12.50"),
            unit_sale_price=Decimal("25.00"),
        )

    return _create
