"""
Typed Exception Hierarchy for the Stock Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (order service, admin tooling) react to ledger failures by kind:
an order placement is rejected on InsufficientStockError, retried on
ConcurrencyTimeoutError, surfaced as a 404 on NotFoundError. Parsing message
strings for that decision is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

    try:
        ledger.reserve_inventory(inventory_id, order_id, quantity=5, actor_id=actor)
    except InsufficientStockError as e:
        reject_order(code=e.code, available=e.available)
    except ConcurrencyTimeoutError:
        retry_with_backoff()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockLedgerError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- InventoryNotFoundError
    |   +-- ReservationNotFoundError
    |   +-- BatchNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- AlertNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateInventoryError
    |   +-- DuplicateBatchError
    |   +-- DuplicateWarehouseCodeError
    |
    +-- InsufficientStockError
    |
    +-- InvalidStateError
    |   +-- ReservationAlreadyReleasedError
    |   +-- WarehouseInactiveError
    |   +-- AlertStateError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyTimeoutError
    |
    +-- HistoryError
    |   +-- HistoryArithmeticError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
PROPAGATION
===============================================================================

Engine operations raise; they never return error values. Any exception
raised after the inventory row lock is taken rolls back the whole operation
(savepoint in the engine, transaction in the InventoryLedger facade). The
ledger never retries on its own -- retry policy belongs to the caller.
"""


class StockLedgerError(Exception):
    """
    Base exception for all stock ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_LEDGER_ERROR"


# Validation


class ValidationError(StockLedgerError):
    """Malformed input, rejected before any lock is taken."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not found


class NotFoundError(StockLedgerError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class InventoryNotFoundError(NotFoundError):
    code: str = "INVENTORY_NOT_FOUND"
    entity_type: str = "Inventory"


class ReservationNotFoundError(NotFoundError):
    code: str = "RESERVATION_NOT_FOUND"
    entity_type: str = "Reservation"


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"
    entity_type: str = "Batch"


class WarehouseNotFoundError(NotFoundError):
    code: str = "WAREHOUSE_NOT_FOUND"
    entity_type: str = "Warehouse"


class AlertNotFoundError(NotFoundError):
    code: str = "ALERT_NOT_FOUND"
    entity_type: str = "InventoryAlert"


# Conflicts


class ConflictError(StockLedgerError):
    """Base exception for uniqueness conflicts."""

    code: str = "CONFLICT"


class DuplicateInventoryError(ConflictError):
    """
    Inventory already initialized for this (product, warehouse) pair.

    Initialization is one-shot; callers should use stock_in instead.
    """

    code: str = "DUPLICATE_INVENTORY"

    def __init__(self, product_id: str, warehouse_id: str):
        self.product_id = str(product_id)
        self.warehouse_id = str(warehouse_id)
        super().__init__(
            f"Inventory already exists for product {product_id} "
            f"in warehouse {warehouse_id}"
        )


class DuplicateBatchError(ConflictError):
    """Batch number is already in use."""

    code: str = "DUPLICATE_BATCH"

    def __init__(self, batch_number: str):
        self.batch_number = batch_number
        super().__init__(f"Batch number already exists: {batch_number}")


class DuplicateWarehouseCodeError(ConflictError):
    """Warehouse code is already in use."""

    code: str = "DUPLICATE_WAREHOUSE_CODE"

    def __init__(self, warehouse_code: str):
        self.warehouse_code = warehouse_code
        super().__init__(f"Warehouse code already exists: {warehouse_code}")


# Stock


class InsufficientStockError(StockLedgerError):
    """
    Requested quantity exceeds the available balance.

    Always recoverable: reduce the quantity, wait for stock, or reject the
    business operation that triggered the request.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        inventory_id: str,
        requested: int,
        available: int,
        batch_id: str | None = None,
    ):
        self.inventory_id = str(inventory_id)
        self.requested = requested
        self.available = available
        self.batch_id = batch_id
        scope = f"batch {batch_id}" if batch_id else f"inventory {inventory_id}"
        super().__init__(
            f"Insufficient stock in {scope}: requested {requested}, "
            f"available {available}"
        )


# State


class InvalidStateError(StockLedgerError):
    """Operation is illegal for the entity's current state."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_type: str, entity_id: str, state: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.state = state
        self.reason = reason
        super().__init__(
            f"{entity_type} {entity_id} is {state}: {reason}"
        )


class ReservationAlreadyReleasedError(InvalidStateError):
    """Released is terminal; a new reservation must be created instead."""

    code: str = "RESERVATION_ALREADY_RELEASED"

    def __init__(self, reservation_id: str):
        super().__init__(
            "Reservation",
            reservation_id,
            "released",
            "a released reservation cannot be released again",
        )


class WarehouseInactiveError(InvalidStateError):
    """Warehouse is deactivated and accepts no new stock."""

    code: str = "WAREHOUSE_INACTIVE"

    def __init__(self, warehouse_id: str):
        super().__init__(
            "Warehouse",
            warehouse_id,
            "inactive",
            "deactivated warehouses accept no new inventory",
        )


class AlertStateError(InvalidStateError):
    """Alert cannot move to the requested status."""

    code: str = "ALERT_STATE_INVALID"

    def __init__(self, alert_id: str, current: str, requested: str):
        self.requested = requested
        super().__init__(
            "InventoryAlert",
            alert_id,
            current,
            f"cannot transition to {requested}",
        )


# Concurrency


class ConcurrencyError(StockLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyTimeoutError(ConcurrencyError):
    """
    Row lock could not be acquired within the lock timeout.

    The operation was rolled back in full; callers should retry with backoff.
    """

    code: str = "CONCURRENCY_TIMEOUT"

    def __init__(self, entity_type: str, entity_id: str, timeout_ms: int):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Timed out after {timeout_ms}ms waiting for lock on "
            f"{entity_type} {entity_id}"
        )


# History


class HistoryError(StockLedgerError):
    """Base exception for movement-log errors."""

    code: str = "HISTORY_ERROR"


class HistoryArithmeticError(HistoryError):
    """History entry quantities do not add up: before + delta != after."""

    code: str = "HISTORY_ARITHMETIC_MISMATCH"

    def __init__(self, inventory_id: str, before: int, delta: int, after: int):
        self.inventory_id = str(inventory_id)
        self.before = before
        self.delta = delta
        self.after = after
        super().__init__(
            f"History arithmetic mismatch on inventory {inventory_id}: "
            f"{before} + {delta} != {after}"
        )


# Immutability


class ImmutabilityError(StockLedgerError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    HistoryEntry rows are append-only, released reservations are terminal,
    and batch receipts are frozen apart from damage counts.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
