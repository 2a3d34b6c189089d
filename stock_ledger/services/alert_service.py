"""
AlertService -- low-stock and out-of-stock alert lifecycle.

Alerts are raised by StockLedgerService inside the mutating transaction, so
an alert exists if and only if the movement that triggered it committed.
A pending alert of the same type raised for the same row within the dedup
window suppresses a new one.  Operators then acknowledge and resolve them.
"""

from datetime import timedelta
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_ledger.domain import stock_rules
from stock_ledger.domain.clock import Clock
from stock_ledger.domain.dtos import AlertRecord
from stock_ledger.domain.values import ALERT_TRANSITIONS, AlertStatus
from stock_ledger.exceptions import AlertNotFoundError, AlertStateError
from stock_ledger.logging_config import get_logger
from stock_ledger.models.alert import InventoryAlert
from stock_ledger.models.inventory import Inventory
from stock_ledger.services.base import BaseService

logger = get_logger("services.alerts")


class AlertService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        dedup_minutes: int = 60,
    ):
        super().__init__(session, clock)
        self._dedup_window = timedelta(minutes=dedup_minutes)

    def check_and_raise(self, inventory: Inventory) -> InventoryAlert | None:
        """
        Raise an alert if ``inventory`` is at or below its reorder level.

        Returns the new alert, or None when stock is healthy or an
        equivalent pending alert was raised within the dedup window.
        """
        alert_type = stock_rules.alert_type_for(
            inventory.quantity_on_hand, inventory.reorder_level
        )
        if alert_type is None:
            return None

        now = self.clock.now()
        recent = self.session.execute(
            select(InventoryAlert.id)
            .where(InventoryAlert.inventory_id == inventory.id)
            .where(InventoryAlert.alert_type == alert_type.value)
            .where(InventoryAlert.status == AlertStatus.PENDING.value)
            .where(InventoryAlert.triggered_at > now - self._dedup_window)
            .limit(1)
        ).scalar_one_or_none()

        if recent is not None:
            logger.debug(
                "alert_suppressed",
                extra={"alert_type": alert_type.value, "existing_alert_id": str(recent)},
            )
            return None

        alert = InventoryAlert(
            id=uuid4(),
            inventory_id=inventory.id,
            alert_type=alert_type.value,
            current_quantity=inventory.quantity_on_hand,
            threshold=inventory.reorder_level,
            status=AlertStatus.PENDING.value,
            triggered_at=now,
        )
        self.session.add(alert)

        logger.warning(
            "stock_alert_raised",
            extra={
                "alert_type": alert_type.value,
                "current_quantity": inventory.quantity_on_hand,
                "threshold": inventory.reorder_level,
            },
        )
        return alert

    def acknowledge_alert(
        self,
        alert_id: UUID,
        actor_id: UUID | None = None,
        resolution_action: str | None = None,
    ) -> AlertRecord:
        alert = self._transition(alert_id, AlertStatus.ACKNOWLEDGED)
        alert.acknowledged_at = self.clock.now()
        alert.acknowledged_by_id = actor_id
        if resolution_action is not None:
            alert.resolution_action = resolution_action
        self.session.flush()
        return AlertRecord.from_model(alert)

    def resolve_alert(
        self,
        alert_id: UUID,
        actor_id: UUID | None = None,
        resolution_action: str | None = None,
    ) -> AlertRecord:
        """Resolve a pending or acknowledged alert.

        Resolving a pending alert directly also stamps the acknowledgement.
        """
        alert = self._transition(alert_id, AlertStatus.RESOLVED)
        now = self.clock.now()
        if alert.acknowledged_at is None:
            alert.acknowledged_at = now
            alert.acknowledged_by_id = actor_id
        alert.resolved_at = now
        if resolution_action is not None:
            alert.resolution_action = resolution_action
        self.session.flush()
        return AlertRecord.from_model(alert)

    def _transition(self, alert_id: UUID, target: AlertStatus) -> InventoryAlert:
        alert = self.session.execute(
            select(InventoryAlert)
            .where(InventoryAlert.id == alert_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if alert is None:
            raise AlertNotFoundError(str(alert_id))

        current = AlertStatus(alert.status)
        if target not in ALERT_TRANSITIONS[current]:
            raise AlertStateError(str(alert_id), current.value, target.value)

        alert.status = target.value
        logger.info(
            "alert_status_changed",
            extra={
                "alert_id": str(alert_id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return alert
