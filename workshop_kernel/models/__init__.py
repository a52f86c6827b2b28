"""ORM models for the workshop kernel."""

from workshop_kernel.models.budget import BudgetItemRecord, BudgetRecord
from workshop_kernel.models.service_execution import ServiceExecutionRecord
from workshop_kernel.models.service_order import ServiceOrderRecord
from workshop_kernel.models.stock import StockItemRecord, StockMovementRecord
from workshop_kernel.models.workflow_event import WorkflowEventRecord

__all__ = [
    "ServiceOrderRecord",
    "BudgetRecord",
    "BudgetItemRecord",
    "ServiceExecutionRecord",
    "StockItemRecord",
    "StockMovementRecord",
    "WorkflowEventRecord",
]
