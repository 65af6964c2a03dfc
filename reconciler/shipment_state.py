"""
Aggregate shipment state of an order, derived from its shipments' own states.
"""
from reconciler.models import Order, Shipment
from reconciler.state_changes import track_state_change

BACKORDER = "backorder"
PARTIAL = "partial"

SHIPMENT_STATE_CHANGE = "shipment_state"


def infer_shipment_state(shipments: list[Shipment]) -> str | None:
    """backorder wins; mixed states are partial; None when there is nothing to ship."""
    states = {shipment.state for shipment in shipments}
    if BACKORDER in states:
        return BACKORDER
    if len(states) > 1:
        return PARTIAL
    return next(iter(states), None)


def update_shipment_state(order: Order) -> str | None:
    last_shipment_state = order.shipment_state
    order.shipment_state = infer_shipment_state(order.shipments)
    track_state_change(order, SHIPMENT_STATE_CHANGE, last_shipment_state, order.shipment_state)
    return order.shipment_state
