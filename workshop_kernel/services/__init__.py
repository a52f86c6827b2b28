"""Services for the workshop kernel (write side)."""

from workshop_kernel.services.event_bus import InMemoryEventBus, RecordingEventPublisher
from workshop_kernel.services.repositories import (
    SqlBudgetRepository,
    SqlServiceExecutionRepository,
    SqlServiceOrderRepository,
    SqlStockRepository,
)
from workshop_kernel.services.retry_service import RetryPolicy, is_retryable_error
from workshop_kernel.services.stock_ledger import StockLedger
from workshop_kernel.services.workflow_coordinator import (
    StockConsumption,
    WorkflowCoordinator,
    WorkflowResult,
)

__all__ = [
    "InMemoryEventBus",
    "RecordingEventPublisher",
    "RetryPolicy",
    "SqlBudgetRepository",
    "SqlServiceExecutionRepository",
    "SqlServiceOrderRepository",
    "SqlStockRepository",
    "StockConsumption",
    "StockLedger",
    "WorkflowCoordinator",
    "WorkflowResult",
    "is_retryable_error",
]
