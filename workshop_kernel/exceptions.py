"""
Typed Exception Hierarchy for the Workshop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The HTTP layer maps each failure kind to a status code, and the coordinator
has to tell a business-rule violation apart from a flaky database. Both need
to catch by type and read structured fields, never parse message strings.

Every exception here:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (entity ids, states, quantities)

Example:
    try:
        coordinator.approve_budget(budget_id)
    except BudgetExpiredError as e:
        api_response(code=e.code, expired_at=e.expired_at)
    except InvalidStatusTransitionError as e:
        api_response(code=e.code, current=e.from_status, target=e.to_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkshopKernelError (base)
    |
    +-- WorkflowError
    |   +-- InvalidStatusTransitionError
    |   |   +-- InvalidBudgetStatusError
    |   +-- InvalidServiceOrderStatusForBudgetItemError
    |   +-- BudgetExpiredError
    |   +-- MechanicNotAssignedError
    |   +-- ActiveExecutionExistsError
    |
    +-- EntityNotFoundError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |   +-- DuplicateSkuError
    |
    +-- InfrastructureError
        +-- RetryableError
        +-- RetryConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                                          | Retried?
----------------|-----------------------------------------------|---------
Workflow        | INVALID_STATUS_TRANSITION                     | never
                | INVALID_BUDGET_STATUS                         | never
                | INVALID_SERVICE_ORDER_STATUS_FOR_BUDGET_ITEM  | never
                | BUDGET_EXPIRED                                | never
                | MECHANIC_NOT_ASSIGNED                         | never
                | ACTIVE_EXECUTION_EXISTS                       | never
----------------|-----------------------------------------------|---------
Lookup          | ENTITY_NOT_FOUND                              | never
----------------|-----------------------------------------------|---------
Stock           | INSUFFICIENT_STOCK                            | never
                | INVALID_QUANTITY                              | never
                | DUPLICATE_SKU                                 | never
----------------|-----------------------------------------------|---------
Infrastructure  | RETRYABLE                                     | raised after
                |                                               | retries end
                | RETRY_CONFIGURATION                           | never

Cascade failures inside the WorkflowCoordinator are NOT raised. They are
logged, published as events and reported in the coordinator's result.
"""


class WorkshopKernelError(Exception):
    """
    Base exception for all workshop kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKSHOP_KERNEL_ERROR"


# Workflow exceptions


class WorkflowError(WorkshopKernelError):
    """Base exception for lifecycle and cascade rule violations."""

    code: str = "WORKFLOW_ERROR"


class InvalidStatusTransitionError(WorkflowError):
    """Requested transition is not in the legal-transition table."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity_kind: str,
        from_status: str,
        to_status: str,
        allowed: tuple[str, ...] = (),
    ):
        self.entity_kind = entity_kind
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = allowed
        super().__init__(
            f"Invalid {entity_kind} transition: {from_status} -> {to_status}. "
            f"Allowed: {list(allowed)}"
        )


class InvalidBudgetStatusError(InvalidStatusTransitionError):
    """Budget operation attempted from a status that does not permit it."""

    code: str = "INVALID_BUDGET_STATUS"


class InvalidServiceOrderStatusForBudgetItemError(WorkflowError):
    """Budget items can only be added while the service order is in diagnosis."""

    code: str = "INVALID_SERVICE_ORDER_STATUS_FOR_BUDGET_ITEM"

    def __init__(self, service_order_id: str, status: str):
        self.service_order_id = service_order_id
        self.status = status
        super().__init__(
            f"Cannot add budget items to service order {service_order_id} "
            f"in status {status}; it must be in_diagnosis"
        )


class BudgetExpiredError(WorkflowError):
    """Budget validity window has elapsed; it can no longer be decided."""

    code: str = "BUDGET_EXPIRED"

    def __init__(self, budget_id: str, expired_at: str):
        self.budget_id = budget_id
        self.expired_at = expired_at
        super().__init__(f"Budget {budget_id} expired at {expired_at}")


class MechanicNotAssignedError(WorkflowError):
    """Execution cannot start without an assigned mechanic."""

    code: str = "MECHANIC_NOT_ASSIGNED"

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(
            f"Cannot start service execution {execution_id} without an assigned mechanic"
        )


class ActiveExecutionExistsError(WorkflowError):
    """Service order already has an assigned or in-progress execution."""

    code: str = "ACTIVE_EXECUTION_EXISTS"

    def __init__(self, service_order_id: str, execution_id: str):
        self.service_order_id = service_order_id
        self.execution_id = execution_id
        super().__init__(
            f"Service order {service_order_id} already has active "
            f"execution {execution_id}"
        )


# Lookup exceptions


class EntityNotFoundError(WorkshopKernelError):
    """Aggregate with given ID was not found."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_kind: str, entity_id: str):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind} not found: {entity_id}")


# Stock exceptions


class StockError(WorkshopKernelError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Movement would drive current stock below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, stock_item_id: str, available: int, requested: int):
        self.stock_item_id = stock_item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for item {stock_item_id}: "
            f"available={available}, requested={requested}"
        )


class InvalidQuantityError(StockError):
    """Movement quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"Invalid quantity {quantity!r}: must be a positive integer")


class DuplicateSkuError(StockError):
    """A stock item with this SKU already exists."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Stock item with SKU {sku} already exists")


# Infrastructure exceptions


class InfrastructureError(WorkshopKernelError):
    """Base exception for storage and configuration failures."""

    code: str = "INFRASTRUCTURE_ERROR"


class RetryableError(InfrastructureError):
    """
    Transient failure, or the terminal wrapper raised by RetryPolicy.

    Raise it directly from an operation to force a retry. RetryPolicy also
    raises it once attempts are exhausted (or immediately for a
    non-retryable failure), with the original exception in ``cause``.
    """

    code: str = "RETRYABLE"

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        attempts: int | None = None,
    ):
        self.cause = cause
        self.attempts = attempts
        super().__init__(message)


class RetryConfigurationError(InfrastructureError):
    """Retry delays are inconsistent (max delay below initial delay)."""

    code: str = "RETRY_CONFIGURATION"

    def __init__(self, initial_delay_ms: int, max_delay_ms: int):
        self.initial_delay_ms = initial_delay_ms
        self.max_delay_ms = max_delay_ms
        super().__init__(
            f"max_delay_ms ({max_delay_ms}) must be greater than or equal to "
            f"initial_delay_ms ({initial_delay_ms})"
        )
