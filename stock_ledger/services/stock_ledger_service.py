"""
StockLedgerService -- the stock ledger engine.

Responsibility:
    The only code that mutates Inventory quantities.  Every operation
    validates its input, locks the target Inventory row, checks the
    quantity invariants against the locked values, mutates, appends
    HistoryEntry rows and flushes.

Architecture position:
    Services -- imperative shell.  Called by the InventoryLedger facade (one
    transaction per call) or directly by callers that manage their own
    transaction via ``session_scope()``.

Invariants enforced:
    ROW_LOCK_SERIALIZATION  -- ``_lock_inventory`` runs before any quantity
        is read; the lock is held until the caller commits.
    NON_NEGATIVE_ON_HAND, RESERVED_WITHIN_ON_HAND -- checked under the lock
        before every decrement; CHECK constraints are the backstop.
    UNIQUE_INVENTORY  -- initialize is one-shot; a concurrent insert race
        is caught through the unique constraint.
    TERMINAL_RELEASE  -- reservation status is re-read under the lock.
    HISTORY_CONSERVATION -- every quantity change is written through
        HistoryRecorder in the same savepoint as the change.

Failure modes:
    - ValidationError before any lock is taken.
    - NotFound / InsufficientStock / InvalidState errors under the lock;
      the operation's savepoint is rolled back, so the caller's transaction
      is left exactly as it was.
    - ConcurrencyTimeoutError when the row lock is not granted in time.

Audit relevance:
    Each operation logs one INFO event (``stock_received``,
    ``stock_reserved`` ...) with the before/after quantities.
"""

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_ledger.config import LedgerSettings
from stock_ledger.db.locking import apply_lock_timeout, translate_lock_timeout
from stock_ledger.domain import stock_rules
from stock_ledger.domain.clock import Clock
from stock_ledger.domain.dtos import (
    AlertRecord,
    BatchRecord,
    HistoryRecord,
    InventorySnapshot,
    ReservationRecord,
    StockMovementResult,
)
from stock_ledger.domain.values import HistoryEventType, ReservationStatus
from stock_ledger.exceptions import (
    BatchNotFoundError,
    DuplicateBatchError,
    DuplicateInventoryError,
    InsufficientStockError,
    InventoryNotFoundError,
    ReservationAlreadyReleasedError,
    ReservationNotFoundError,
    ValidationError,
    WarehouseInactiveError,
    WarehouseNotFoundError,
)
from stock_ledger.logging_config import get_logger
from stock_ledger.models.alert import InventoryAlert
from stock_ledger.models.batch import Batch
from stock_ledger.models.history import HistoryEntry
from stock_ledger.models.inventory import Inventory
from stock_ledger.models.reservation import Reservation
from stock_ledger.models.warehouse import Warehouse
from stock_ledger.services.alert_service import AlertService
from stock_ledger.services.base import BaseService
from stock_ledger.services.history_recorder import HistoryRecorder

logger = get_logger("services.stock_ledger")


# ---------------------------------------------------------------------------
# Input validation (runs before any lock)
# ---------------------------------------------------------------------------


def _require_int(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, f"expected an integer, got {value!r}")
    return value


def _require_positive(field: str, value: Any) -> int:
    value = _require_int(field, value)
    if value <= 0:
        raise ValidationError(field, f"must be positive, got {value}")
    return value


def _require_non_negative(field: str, value: Any) -> int:
    value = _require_int(field, value)
    if value < 0:
        raise ValidationError(field, f"must not be negative, got {value}")
    return value


def _require_money(field: str, value: Any) -> Decimal:
    """Decimal or int only; float is rejected to keep money exact."""
    if isinstance(value, (bool, float)):
        raise ValidationError(field, f"expected a Decimal, got {value!r}")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"expected a Decimal, got {value!r}") from None
    if not amount.is_finite():
        raise ValidationError(field, "must be finite")
    if amount < 0:
        raise ValidationError(field, f"must not be negative, got {amount}")
    return amount


def _require_text(field: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, "must not be blank")
    return str(value).strip()


def _require_aware(field: str, value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        raise ValidationError(field, "must be timezone-aware")
    return value


class StockLedgerService(BaseService):
    """
    Atomic, invariant-checked stock mutations.

    Contract:
        Receives a transaction-scoped Session.  Each public method runs in a
        savepoint and flushes; it never commits.  Return values are frozen
        DTOs reflecting the flushed state.

    Guarantees:
        - No partial application: a raised error leaves no trace of the
          failed operation in the session.
        - Every quantity change has exactly one HistoryEntry per affected
          quantity (on-hand or reserved).

    Non-goals:
        - Does NOT retry on lock timeouts; the caller decides.
        - Does NOT check permissions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self._settings = settings or LedgerSettings()
        self._history = HistoryRecorder(session, self.clock)
        self._alerts = AlertService(
            session, self.clock, dedup_minutes=self._settings.alert_dedup_minutes
        )

    # -- Locking -----------------------------------------------------------

    def _lock_inventory(self, inventory_id: UUID) -> Inventory:
        """SELECT ... FOR UPDATE on one Inventory row, refreshed from the DB."""
        timeout_ms = self._settings.lock_timeout_ms
        with translate_lock_timeout("Inventory", inventory_id, timeout_ms):
            apply_lock_timeout(self.session, timeout_ms)
            inventory = self.session.execute(
                select(Inventory)
                .where(Inventory.id == inventory_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if inventory is None:
            raise InventoryNotFoundError(str(inventory_id))
        return inventory

    def _lock_reservation(self, reservation_id: UUID) -> tuple[Reservation, Inventory]:
        """
        Lock the owning Inventory row, then re-read the reservation.

        The first read only finds the owner.  Status is checked on the
        second read, taken after the inventory lock, so two concurrent
        releases cannot both see ACTIVE.
        """
        inventory_id = self.session.execute(
            select(Reservation.inventory_id).where(Reservation.id == reservation_id)
        ).scalar_one_or_none()
        if inventory_id is None:
            raise ReservationNotFoundError(str(reservation_id))

        inventory = self._lock_inventory(inventory_id)
        reservation = self.session.execute(
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()
        if reservation.status == ReservationStatus.RELEASED.value:
            raise ReservationAlreadyReleasedError(str(reservation_id))
        return reservation, inventory

    # -- Helpers -----------------------------------------------------------

    def _touch(self, inventory: Inventory) -> None:
        inventory.stock_status = stock_rules.derive_stock_status(
            inventory.quantity_on_hand
        ).value
        inventory.updated_at = self.clock.now()

    def _result(
        self,
        inventory: Inventory,
        entries: list[HistoryEntry],
        batch: Batch | None = None,
        reservation: Reservation | None = None,
        alert: InventoryAlert | None = None,
    ) -> StockMovementResult:
        self.session.flush()
        return StockMovementResult(
            inventory=InventorySnapshot.from_model(inventory),
            history=tuple(HistoryRecord.from_model(e) for e in entries),
            batch=BatchRecord.from_model(batch) if batch is not None else None,
            reservation=(
                ReservationRecord.from_model(reservation)
                if reservation is not None
                else None
            ),
            alert=AlertRecord.from_model(alert) if alert is not None else None,
        )

    def _check_available(self, inventory: Inventory, quantity: int) -> None:
        available = inventory.quantity_available
        if quantity > available:
            raise InsufficientStockError(str(inventory.id), quantity, available)

    # -- Operations --------------------------------------------------------

    def initialize_inventory(
        self,
        product_id: str,
        warehouse_id: UUID,
        initial_quantity: int = 0,
        reorder_level: int | None = None,
        reorder_quantity: int | None = None,
        cost_per_unit: Decimal = Decimal("0"),
        actor_id: UUID | None = None,
    ) -> StockMovementResult:
        """
        Create the single Inventory row for (product_id, warehouse_id).

        Raises:
            ValidationError: Blank product id, negative quantities or cost.
            WarehouseNotFoundError: Unknown warehouse.
            WarehouseInactiveError: Warehouse is deactivated.
            DuplicateInventoryError: Row already exists (including a lost
                concurrent-insert race).
        """
        product_id = _require_text("product_id", product_id)
        initial_quantity = _require_non_negative("initial_quantity", initial_quantity)
        if reorder_level is None:
            reorder_level = self._settings.default_reorder_level
        if reorder_quantity is None:
            reorder_quantity = self._settings.default_reorder_quantity
        reorder_level = _require_non_negative("reorder_level", reorder_level)
        reorder_quantity = _require_non_negative("reorder_quantity", reorder_quantity)
        cost = _require_money("cost_per_unit", cost_per_unit)

        with self.session.begin_nested():
            warehouse = self.session.get(Warehouse, warehouse_id)
            if warehouse is None:
                raise WarehouseNotFoundError(str(warehouse_id))
            if not warehouse.is_active:
                raise WarehouseInactiveError(str(warehouse_id))

            existing = self.session.execute(
                select(Inventory.id)
                .where(Inventory.product_id == product_id)
                .where(Inventory.warehouse_id == warehouse_id)
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicateInventoryError(product_id, str(warehouse_id))

            now = self.clock.now()
            inventory = Inventory(
                id=uuid4(),
                product_id=product_id,
                warehouse_id=warehouse_id,
                quantity_on_hand=initial_quantity,
                quantity_reserved=0,
                quantity_defective=0,
                reorder_level=reorder_level,
                reorder_quantity=reorder_quantity,
                cost_per_unit=cost,
                stock_status=stock_rules.derive_stock_status(initial_quantity).value,
                last_history_seq=0,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(inventory)
                    self.session.flush()
            except IntegrityError as exc:
                logger.info(
                    "inventory_insert_race_lost",
                    extra={"product_id": product_id, "warehouse_id": str(warehouse_id)},
                )
                raise DuplicateInventoryError(product_id, str(warehouse_id)) from exc

            entry = self._history.record(
                inventory,
                HistoryEventType.STOCK_IN,
                initial_quantity,
                0,
                initial_quantity,
                reason="Initial stock",
                actor_id=actor_id,
                unit_cost=cost,
            )
            result = self._result(inventory, [entry])

        logger.info(
            "inventory_initialized",
            extra={
                "inventory_id": str(inventory.id),
                "product_id": product_id,
                "warehouse_id": str(warehouse_id),
                "initial_quantity": initial_quantity,
            },
        )
        return result

    def stock_in(
        self,
        inventory_id: UUID,
        quantity: int,
        batch_number: str,
        cost_per_unit: Decimal,
        received_date: datetime | None = None,
        supplier: str | None = None,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        actor_id: UUID | None = None,
        expiry_date: datetime | None = None,
    ) -> StockMovementResult:
        """
        Receive stock as a new Batch.

        Raises:
            ValidationError: Non-positive quantity, negative cost, blank batch
                number, or expiry before receipt.
            InventoryNotFoundError, WarehouseInactiveError, DuplicateBatchError.
        """
        quantity = _require_positive("quantity", quantity)
        batch_number = _require_text("batch_number", batch_number)
        cost = _require_money("cost_per_unit", cost_per_unit)
        received = _require_aware("received_date", received_date) or self.clock.now()
        expiry_date = _require_aware("expiry_date", expiry_date)
        if expiry_date is not None and expiry_date < received:
            raise ValidationError("expiry_date", "must not be before received_date")

        with self.session.begin_nested():
            inventory = self._lock_inventory(inventory_id)

            warehouse = self.session.get(Warehouse, inventory.warehouse_id)
            if not warehouse.is_active:
                raise WarehouseInactiveError(str(warehouse.id))

            taken = self.session.execute(
                select(Batch.id).where(Batch.batch_number == batch_number)
            ).scalar_one_or_none()
            if taken is not None:
                raise DuplicateBatchError(batch_number)

            batch = Batch(
                id=uuid4(),
                inventory_id=inventory.id,
                batch_number=batch_number,
                quantity=quantity,
                quantity_damaged=0,
                cost_per_unit=cost,
                received_date=received,
                supplier=supplier,
                reference=reference,
                expiry_date=expiry_date,
                batch_metadata=dict(metadata) if metadata else None,
                created_at=self.clock.now(),
                created_by_id=actor_id,
            )
            try:
                with self.session.begin_nested():
                    self.session.add(batch)
                    self.session.flush()
            except IntegrityError as exc:
                raise DuplicateBatchError(batch_number) from exc

            before = inventory.quantity_on_hand
            inventory.quantity_on_hand = before + quantity
            self._touch(inventory)

            entry = self._history.record(
                inventory,
                HistoryEventType.STOCK_IN,
                quantity,
                before,
                inventory.quantity_on_hand,
                reason=f"Stock received - batch {batch_number}",
                actor_id=actor_id,
                batch_id=batch.id,
                unit_cost=cost,
                reference=reference,
                metadata=metadata,
            )
            result = self._result(inventory, [entry], batch=batch)

        logger.info(
            "stock_received",
            extra={
                "batch_number": batch_number,
                "quantity": quantity,
                "on_hand_before": before,
                "on_hand_after": result.inventory.quantity_on_hand,
            },
        )
        return result

    def stock_out(
        self,
        inventory_id: UUID,
        quantity: int,
        reason: str = "sale",
        order_id: str | None = None,
        actor_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StockMovementResult:
        """
        Remove unreserved stock (sale, shipment, transfer out).

        Raises:
            ValidationError, InventoryNotFoundError,
            InsufficientStockError: quantity exceeds the available balance.
        """
        quantity = _require_positive("quantity", quantity)

        with self.session.begin_nested():
            inventory = self._lock_inventory(inventory_id)
            self._check_available(inventory, quantity)

            before = inventory.quantity_on_hand
            inventory.quantity_on_hand = before - quantity
            self._touch(inventory)

            entry = self._history.record(
                inventory,
                HistoryEventType.STOCK_OUT,
                -quantity,
                before,
                inventory.quantity_on_hand,
                reason=reason,
                actor_id=actor_id,
                order_id=order_id,
                metadata=metadata,
            )
            alert = self._alerts.check_and_raise(inventory)
            result = self._result(inventory, [entry], alert=alert)

        logger.info(
            "stock_removed",
            extra={
                "quantity": quantity,
                "reason": reason,
                "on_hand_before": before,
                "on_hand_after": result.inventory.quantity_on_hand,
            },
        )
        return result

    def reserve_inventory(
        self,
        inventory_id: UUID,
        order_id: str,
        quantity: int,
        actor_id: UUID | None = None,
        reserved_price: Decimal | None = None,
    ) -> StockMovementResult:
        """
        Hold available stock for an order.

        The hold expires ``reservation_hold_hours`` after creation; expired
        holds are released by InventoryLedger.release_expired_reservations.

        Raises:
            ValidationError, InventoryNotFoundError,
            InsufficientStockError: quantity exceeds the available balance.
        """
        order_id = _require_text("order_id", order_id)
        quantity = _require_positive("quantity", quantity)
        price = None
        if reserved_price is not None:
            price = _require_money("reserved_price", reserved_price)

        with self.session.begin_nested():
            inventory = self._lock_inventory(inventory_id)
            self._check_available(inventory, quantity)

            now = self.clock.now()
            reservation = Reservation(
                id=uuid4(),
                inventory_id=inventory.id,
                order_id=order_id,
                quantity=quantity,
                reserved_price=price,
                status=ReservationStatus.ACTIVE.value,
                created_at=now,
                expires_at=now + timedelta(hours=self._settings.reservation_hold_hours),
                reserved_by_id=actor_id,
            )
            self.session.add(reservation)

            before = inventory.quantity_reserved
            inventory.quantity_reserved = before + quantity
            self._touch(inventory)

            entry = self._history.record(
                inventory,
                HistoryEventType.RESERVE,
                quantity,
                before,
                inventory.quantity_reserved,
                reason=f"Reserved for order {order_id}",
                actor_id=actor_id,
                order_id=order_id,
                reservation_id=reservation.id,
            )
            result = self._result(inventory, [entry], reservation=reservation)

        logger.info(
            "stock_reserved",
            extra={
                "reservation_id": str(reservation.id),
                "quantity": quantity,
                "reserved_after": result.inventory.quantity_reserved,
                "available_after": result.inventory.quantity_available,
            },
        )
        return result

    def unreserve_inventory(
        self,
        reservation_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> StockMovementResult:
        """
        Release an active reservation back to the available balance.

        Raises:
            ReservationNotFoundError,
            ReservationAlreadyReleasedError: already released (terminal).
        """
        reason = reason or "released"

        with self.session.begin_nested():
            reservation, inventory = self._lock_reservation(reservation_id)
            entry = self._release(reservation, inventory, reason, actor_id)
            self._touch(inventory)
            result = self._result(inventory, [entry], reservation=reservation)

        logger.info(
            "reservation_released",
            extra={
                "reservation_id": str(reservation_id),
                "quantity": reservation.quantity,
                "reason": reason,
                "reserved_after": result.inventory.quantity_reserved,
            },
        )
        return result

    def _release(
        self,
        reservation: Reservation,
        inventory: Inventory,
        reason: str,
        actor_id: UUID | None,
    ) -> HistoryEntry:
        before = inventory.quantity_reserved
        inventory.quantity_reserved = before - reservation.quantity

        reservation.status = ReservationStatus.RELEASED.value
        reservation.released_at = self.clock.now()
        reservation.release_reason = reason
        reservation.released_by_id = actor_id

        return self._history.record(
            inventory,
            HistoryEventType.UNRESERVE,
            -reservation.quantity,
            before,
            inventory.quantity_reserved,
            reason=reason,
            actor_id=actor_id,
            order_id=reservation.order_id,
            reservation_id=reservation.id,
        )

    def fulfill_reservation(
        self,
        reservation_id: UUID,
        actor_id: UUID | None = None,
        reason: str = "fulfilled",
    ) -> StockMovementResult:
        """
        Ship a reservation: release the hold and remove the units.

        Writes an UNRESERVE entry (reserved counts) followed by a STOCK_OUT
        entry (on-hand counts), both carrying the order id.
        """
        with self.session.begin_nested():
            reservation, inventory = self._lock_reservation(reservation_id)
            release_entry = self._release(reservation, inventory, reason, actor_id)

            quantity = reservation.quantity
            before = inventory.quantity_on_hand
            inventory.quantity_on_hand = before - quantity
            self._touch(inventory)

            out_entry = self._history.record(
                inventory,
                HistoryEventType.STOCK_OUT,
                -quantity,
                before,
                inventory.quantity_on_hand,
                reason=reason,
                actor_id=actor_id,
                order_id=reservation.order_id,
                reservation_id=reservation.id,
            )
            alert = self._alerts.check_and_raise(inventory)
            result = self._result(
                inventory,
                [release_entry, out_entry],
                reservation=reservation,
                alert=alert,
            )

        logger.info(
            "reservation_fulfilled",
            extra={
                "reservation_id": str(reservation_id),
                "quantity": quantity,
                "on_hand_after": result.inventory.quantity_on_hand,
            },
        )
        return result

    def adjust_inventory(
        self,
        inventory_id: UUID,
        adjustment_quantity: int,
        reason: str,
        actor_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StockMovementResult:
        """
        Correct on-hand by a signed amount (cycle count, shrinkage, found).

        Raises:
            ValidationError: Zero adjustment, blank reason, or a result below
                zero or below the reserved quantity.
            InventoryNotFoundError.
        """
        adjustment = _require_int("adjustment_quantity", adjustment_quantity)
        if adjustment == 0:
            raise ValidationError("adjustment_quantity", "must not be zero")
        reason = _require_text("reason", reason)

        with self.session.begin_nested():
            inventory = self._lock_inventory(inventory_id)
            shortfall = stock_rules.adjustment_shortfall(
                inventory.quantity_on_hand, inventory.quantity_reserved, adjustment
            )
            if shortfall is not None:
                raise ValidationError("adjustment_quantity", shortfall)

            before = inventory.quantity_on_hand
            inventory.quantity_on_hand = before + adjustment
            self._touch(inventory)

            entry = self._history.record(
                inventory,
                HistoryEventType.ADJUST,
                adjustment,
                before,
                inventory.quantity_on_hand,
                reason=reason,
                actor_id=actor_id,
                metadata=metadata,
            )
            alert = self._alerts.check_and_raise(inventory)
            result = self._result(inventory, [entry], alert=alert)

        logger.info(
            "inventory_adjusted",
            extra={
                "adjustment": adjustment,
                "reason": reason,
                "on_hand_before": before,
                "on_hand_after": result.inventory.quantity_on_hand,
            },
        )
        return result

    def record_damage(
        self,
        inventory_id: UUID,
        batch_id: UUID | None,
        quantity: int,
        reason: str,
        actor_id: UUID | None = None,
    ) -> StockMovementResult:
        """
        Move units from on-hand to defective, optionally against a batch.

        Raises:
            ValidationError, InventoryNotFoundError,
            InsufficientStockError: quantity exceeds the available balance or
                the batch's remaining quantity.
            BatchNotFoundError: Batch missing or owned by another row.
        """
        quantity = _require_positive("quantity", quantity)
        reason = _require_text("reason", reason)

        with self.session.begin_nested():
            inventory = self._lock_inventory(inventory_id)
            self._check_available(inventory, quantity)

            batch = None
            if batch_id is not None:
                batch = self.session.execute(
                    select(Batch)
                    .where(Batch.id == batch_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if batch is None or batch.inventory_id != inventory.id:
                    raise BatchNotFoundError(str(batch_id))
                if quantity > batch.quantity_remaining:
                    raise InsufficientStockError(
                        str(inventory.id),
                        quantity,
                        batch.quantity_remaining,
                        batch_id=str(batch_id),
                    )
                batch.quantity_damaged += quantity

            before = inventory.quantity_on_hand
            inventory.quantity_on_hand = before - quantity
            inventory.quantity_defective += quantity
            self._touch(inventory)

            entry = self._history.record(
                inventory,
                HistoryEventType.DAMAGE,
                -quantity,
                before,
                inventory.quantity_on_hand,
                reason=f"Damage recorded: {reason}",
                actor_id=actor_id,
                batch_id=batch_id,
            )
            alert = self._alerts.check_and_raise(inventory)
            result = self._result(inventory, [entry], batch=batch, alert=alert)

        logger.info(
            "damage_recorded",
            extra={
                "quantity": quantity,
                "batch_id": str(batch_id) if batch_id else None,
                "on_hand_after": result.inventory.quantity_on_hand,
                "defective_after": result.inventory.quantity_defective,
            },
        )
        return result
