"""
Prometheus metrics: orders reconciled, payment/shipment state transitions, address repairs.
Observed only after the update cycle's transaction has committed (see db.reconcile_order).
"""
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from reconciler.models import StateChange
from reconciler.payment_state import PAYMENT_STATE_CHANGE, is_known_payment_state
from reconciler.shipment_state import SHIPMENT_STATE_CHANGE

orders_reconciled_total = Counter(
    "orders_reconciled_total",
    "Total order update cycles committed (repair, totals, shipment state, payment state)",
)

# Only transitions that were audited (persisted order, state actually changed)
payment_state_transitions_total = Counter(
    "payment_state_transitions_total",
    "Total audited payment state transitions",
    ["previous_state", "next_state"],
)
shipment_state_transitions_total = Counter(
    "shipment_state_transitions_total",
    "Total audited shipment state transitions",
    ["previous_state", "next_state"],
)

ship_address_repairs_total = Counter(
    "ship_address_repairs_total",
    "Total orders whose missing ship address was filled from the distributor address",
)


def payment_state_label(state: str | None) -> str:
    """Legacy/custom payment states collapse into one label value."""
    if state is None:
        return "none"
    return state if is_known_payment_state(state) else "other"


def observe_reconcile(state_changes: list[StateChange], address_repaired: bool) -> None:
    orders_reconciled_total.inc()
    if address_repaired:
        ship_address_repairs_total.inc()
    for change in state_changes:
        if change.name == PAYMENT_STATE_CHANGE:
            payment_state_transitions_total.labels(
                previous_state=payment_state_label(change.previous_value),
                next_state=payment_state_label(change.next_value),
            ).inc()
        elif change.name == SHIPMENT_STATE_CHANGE:
            shipment_state_transitions_total.labels(
                previous_state=str(change.previous_value).lower(),
                next_state=str(change.next_value).lower(),
            ).inc()


def get_metrics_content_type():
    return CONTENT_TYPE_LATEST


def get_metrics_bytes():
    return generate_latest()
