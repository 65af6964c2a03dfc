"""
OrderUpdater: one in-memory update cycle for a loaded order.
Order of steps matters: the address repair runs before totals, totals before the state derivations.
The caller wraps update() and the write-back in a single transaction (see db.reconcile_order)
and records metrics once that transaction has committed.
"""
import logging

from reconciler.address import repair_ship_address
from reconciler.models import Order, PaymentQueries
from reconciler.payment_state import update_payment_state
from reconciler.shipment_state import update_shipment_state
from reconciler.totals import update_totals

logger = logging.getLogger(__name__)


class OrderUpdater:
    def __init__(self, order: Order):
        self.order = order
        self.address_repaired = False

    def update(self) -> Order:
        changes_before = len(self.order.state_changes)
        self.before_save_hook()
        self.update_totals()
        self.update_shipment_state()
        self.update_payment_state()
        logger.info(
            "Updated order %s: total=%s payment_total=%s payment_state=%s shipment_state=%s (%d new state change(s))",
            self.order.number,
            self.order.total,
            self.order.payment_total,
            self.order.payment_state,
            self.order.shipment_state,
            len(self.order.state_changes) - changes_before,
        )
        return self.order

    def before_save_hook(self) -> None:
        self.address_repaired = repair_ship_address(self.order) or self.address_repaired

    def update_totals(self) -> None:
        update_totals(self.order)

    def update_shipment_state(self) -> str | None:
        return update_shipment_state(self.order)

    def update_payment_state(self, payments: PaymentQueries | None = None) -> str:
        return update_payment_state(self.order, payments)
