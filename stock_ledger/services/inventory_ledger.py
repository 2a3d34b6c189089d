"""
InventoryLedger -- caller-facing entry point for the stock ledger.

Responsibility:
    Opens one transaction per operation from an injected session factory,
    runs the engine (or a selector), commits on success and rolls back on
    any failure.  Binds a correlation id and the operation's identifiers
    into LogContext so every log line of the call can be joined.

Architecture position:
    Services -- outermost layer of the package.  Order and admin code call
    this class; nothing inside the package calls it.

Invariants enforced:
    Transaction boundaries -- this is the only class that commits.  An
    exception from any step rolls the whole operation back, including its
    history, batch, reservation and alert rows, and is re-raised unchanged
    (lock-wait expiry is re-raised as ConcurrencyTimeoutError).
    Reads run in their own session marked READ_ONLY_OPTION, so on SQLite
    they take no write lock and do not queue behind open writers.

Failure modes:
    Every StockLedgerError propagates to the caller.  Nothing is retried.
"""

import time
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from stock_ledger.config import LedgerSettings
from stock_ledger.db.engine import READ_ONLY_OPTION
from stock_ledger.db.locking import translate_lock_timeout
from stock_ledger.domain.clock import Clock, SystemClock
from stock_ledger.domain.dtos import (
    AlertRecord,
    BatchRecord,
    HistoryPage,
    InventoryDetail,
    InventorySnapshot,
    ReconstructedBalances,
    ReservationRecord,
    StockMovementResult,
    WarehouseInventorySummary,
    WarehouseRecord,
)
from stock_ledger.domain.values import WarehouseType
from stock_ledger.exceptions import ReservationAlreadyReleasedError
from stock_ledger.logging_config import LogContext, get_logger
from stock_ledger.selectors.history_selector import HistorySelector
from stock_ledger.selectors.inventory_selector import InventorySelector
from stock_ledger.services.alert_service import AlertService
from stock_ledger.services.stock_ledger_service import StockLedgerService
from stock_ledger.services.warehouse_service import WarehouseService

logger = get_logger("services.inventory_ledger")

T = TypeVar("T")

EXPIRED_RELEASE_REASON = "expired"


class InventoryLedger:
    """
    Transaction-per-call facade over the ledger services and selectors.

    Contract:
        Safe to share across threads: each call opens its own session from
        ``session_factory`` and closes it before returning.  Results are
        frozen DTOs.

    Usage:
        ledger = InventoryLedger(get_session_factory(), settings=load_settings())
        result = ledger.reserve_inventory(inventory_id, "ORD-1", 5, actor_id=actor)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings or LedgerSettings()

    # -- Transaction plumbing ----------------------------------------------

    def _write(
        self,
        operation: str,
        work: Callable[[Session], T],
        *,
        inventory_id: UUID | None = None,
        order_id: str | None = None,
        actor_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            inventory_id=inventory_id,
            order_id=order_id,
            actor_id=actor_id,
        ):
            t0 = time.monotonic()
            session = self._session_factory()
            try:
                with translate_lock_timeout(
                    "Inventory", inventory_id, self._settings.lock_timeout_ms
                ):
                    result = work(session)
                    session.commit()
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "ledger_operation_committed",
                    extra={"duration_ms": duration_ms},
                )
                return result
            except Exception:
                session.rollback()
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.warning(
                    "transaction_rolled_back",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
            finally:
                session.close()

    def _read(self, work: Callable[[Session], T], entity_id: object = None) -> T:
        session = self._session_factory()
        try:
            with translate_lock_timeout("Inventory", entity_id, self._settings.lock_timeout_ms):
                session.connection(execution_options={READ_ONLY_OPTION: True})
                return work(session)
        finally:
            session.rollback()
            session.close()

    def _engine(self, session: Session) -> StockLedgerService:
        return StockLedgerService(session, self._clock, self._settings)

    def _inventory_selector(self, session: Session) -> InventorySelector:
        return InventorySelector(session, self._clock)

    # -- Stock movements ---------------------------------------------------

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
        return self._write(
            "initialize_inventory",
            lambda s: self._engine(s).initialize_inventory(
                product_id,
                warehouse_id,
                initial_quantity=initial_quantity,
                reorder_level=reorder_level,
                reorder_quantity=reorder_quantity,
                cost_per_unit=cost_per_unit,
                actor_id=actor_id,
            ),
            actor_id=actor_id,
        )

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
        return self._write(
            "stock_in",
            lambda s: self._engine(s).stock_in(
                inventory_id,
                quantity,
                batch_number,
                cost_per_unit,
                received_date=received_date,
                supplier=supplier,
                reference=reference,
                metadata=metadata,
                actor_id=actor_id,
                expiry_date=expiry_date,
            ),
            inventory_id=inventory_id,
            actor_id=actor_id,
        )

    def stock_out(
        self,
        inventory_id: UUID,
        quantity: int,
        reason: str = "sale",
        order_id: str | None = None,
        actor_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StockMovementResult:
        return self._write(
            "stock_out",
            lambda s: self._engine(s).stock_out(
                inventory_id,
                quantity,
                reason=reason,
                order_id=order_id,
                actor_id=actor_id,
                metadata=metadata,
            ),
            inventory_id=inventory_id,
            order_id=order_id,
            actor_id=actor_id,
        )

    def reserve_inventory(
        self,
        inventory_id: UUID,
        order_id: str,
        quantity: int,
        actor_id: UUID | None = None,
        reserved_price: Decimal | None = None,
    ) -> StockMovementResult:
        return self._write(
            "reserve_inventory",
            lambda s: self._engine(s).reserve_inventory(
                inventory_id,
                order_id,
                quantity,
                actor_id=actor_id,
                reserved_price=reserved_price,
            ),
            inventory_id=inventory_id,
            order_id=order_id,
            actor_id=actor_id,
        )

    def unreserve_inventory(
        self,
        reservation_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> StockMovementResult:
        return self._write(
            "unreserve_inventory",
            lambda s: self._engine(s).unreserve_inventory(
                reservation_id, reason=reason, actor_id=actor_id
            ),
            actor_id=actor_id,
        )

    def fulfill_reservation(
        self,
        reservation_id: UUID,
        actor_id: UUID | None = None,
        reason: str = "fulfilled",
    ) -> StockMovementResult:
        return self._write(
            "fulfill_reservation",
            lambda s: self._engine(s).fulfill_reservation(
                reservation_id, actor_id=actor_id, reason=reason
            ),
            actor_id=actor_id,
        )

    def adjust_inventory(
        self,
        inventory_id: UUID,
        adjustment_quantity: int,
        reason: str,
        actor_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StockMovementResult:
        return self._write(
            "adjust_inventory",
            lambda s: self._engine(s).adjust_inventory(
                inventory_id,
                adjustment_quantity,
                reason,
                actor_id=actor_id,
                metadata=metadata,
            ),
            inventory_id=inventory_id,
            actor_id=actor_id,
        )

    def record_damage(
        self,
        inventory_id: UUID,
        batch_id: UUID | None,
        quantity: int,
        reason: str,
        actor_id: UUID | None = None,
    ) -> StockMovementResult:
        return self._write(
            "record_damage",
            lambda s: self._engine(s).record_damage(
                inventory_id, batch_id, quantity, reason, actor_id=actor_id
            ),
            inventory_id=inventory_id,
            actor_id=actor_id,
        )

    def release_expired_reservations(self) -> list[ReservationRecord]:
        """
        Release every active reservation past its hold window.

        Each release commits in its own transaction, so one slow row does
        not hold locks on the others.  A reservation released concurrently
        by another caller is skipped.
        """
        expired = self._read(
            lambda s: self._inventory_selector(s).expired_reservation_ids()
        )
        released: list[ReservationRecord] = []
        for reservation_id in expired:
            try:
                result = self._write(
                    "release_expired_reservation",
                    lambda s, rid=reservation_id: self._engine(s).unreserve_inventory(
                        rid, reason=EXPIRED_RELEASE_REASON
                    ),
                )
            except ReservationAlreadyReleasedError:
                logger.info(
                    "expired_reservation_already_released",
                    extra={"reservation_id": str(reservation_id)},
                )
                continue
            released.append(result.reservation)

        logger.info(
            "expired_reservations_released",
            extra={"candidates": len(expired), "released": len(released)},
        )
        return released

    # -- Warehouses --------------------------------------------------------

    def create_warehouse(
        self,
        name: str,
        code: str,
        warehouse_type: WarehouseType | str = WarehouseType.PRIMARY,
        max_capacity: int | None = None,
        actor_id: UUID | None = None,
        **details: Any,
    ) -> WarehouseRecord:
        return self._write(
            "create_warehouse",
            lambda s: WarehouseService(s, self._clock).create_warehouse(
                name, code, warehouse_type, max_capacity, actor_id, **details
            ),
            actor_id=actor_id,
        )

    def deactivate_warehouse(
        self,
        warehouse_id: UUID,
        actor_id: UUID | None = None,
    ) -> WarehouseRecord:
        return self._write(
            "deactivate_warehouse",
            lambda s: WarehouseService(s, self._clock).deactivate_warehouse(
                warehouse_id, actor_id
            ),
            actor_id=actor_id,
        )

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseRecord:
        return self._read(lambda s: self._inventory_selector(s).get_warehouse(warehouse_id))

    def list_warehouses(self, include_inactive: bool = False) -> list[WarehouseRecord]:
        return self._read(
            lambda s: self._inventory_selector(s).list_warehouses(include_inactive)
        )

    # -- Alerts ------------------------------------------------------------

    def acknowledge_alert(
        self,
        alert_id: UUID,
        actor_id: UUID | None = None,
        resolution_action: str | None = None,
    ) -> AlertRecord:
        return self._write(
            "acknowledge_alert",
            lambda s: self._alert_service(s).acknowledge_alert(
                alert_id, actor_id, resolution_action
            ),
            actor_id=actor_id,
        )

    def resolve_alert(
        self,
        alert_id: UUID,
        actor_id: UUID | None = None,
        resolution_action: str | None = None,
    ) -> AlertRecord:
        return self._write(
            "resolve_alert",
            lambda s: self._alert_service(s).resolve_alert(
                alert_id, actor_id, resolution_action
            ),
            actor_id=actor_id,
        )

    def _alert_service(self, session: Session) -> AlertService:
        return AlertService(
            session, self._clock, dedup_minutes=self._settings.alert_dedup_minutes
        )

    def get_pending_alerts(self, warehouse_id: UUID | None = None) -> list[AlertRecord]:
        return self._read(
            lambda s: self._inventory_selector(s).get_pending_alerts(warehouse_id)
        )

    # -- Reads -------------------------------------------------------------

    def get_inventory(self, inventory_id: UUID) -> InventoryDetail:
        return self._read(
            lambda s: self._inventory_selector(s).get_inventory(inventory_id), inventory_id
        )

    def get_product_inventory(self, product_id: str) -> list[InventorySnapshot]:
        return self._read(
            lambda s: self._inventory_selector(s).get_product_inventory(product_id)
        )

    def get_low_stock_items(self, warehouse_id: UUID | None = None) -> list[InventorySnapshot]:
        return self._read(
            lambda s: self._inventory_selector(s).get_low_stock_items(warehouse_id)
        )

    def get_warehouse_inventory_summary(self, warehouse_id: UUID) -> WarehouseInventorySummary:
        return self._read(
            lambda s: self._inventory_selector(s).get_warehouse_inventory_summary(warehouse_id)
        )

    def get_expiring_batches(self, days: int = 30) -> list[BatchRecord]:
        return self._read(lambda s: self._inventory_selector(s).get_expiring_batches(days))

    def get_reservation(self, reservation_id: UUID) -> ReservationRecord:
        return self._read(
            lambda s: self._inventory_selector(s).get_reservation(reservation_id)
        )

    def get_order_reservations(self, order_id: str) -> list[ReservationRecord]:
        return self._read(
            lambda s: self._inventory_selector(s).get_order_reservations(order_id)
        )

    def get_inventory_history(
        self,
        inventory_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> HistoryPage:
        return self._read(
            lambda s: HistorySelector(
                s, self._settings.history_max_page_size
            ).get_inventory_history(inventory_id, limit=limit, offset=offset),
            inventory_id,
        )

    def reconstruct_balances(self, inventory_id: UUID) -> ReconstructedBalances:
        return self._read(
            lambda s: HistorySelector(
                s, self._settings.history_max_page_size
            ).reconstruct_balances(inventory_id),
            inventory_id,
        )
