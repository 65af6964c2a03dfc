"""
Audit trail for derived order states. An entry is appended only when a persisted
order's derived state actually moves; new orders have no prior state to diff against.
"""
import logging

from reconciler.models import Order

logger = logging.getLogger(__name__)


def track_state_change(order: Order, name: str, previous_value: str | None, next_value: str | None) -> bool:
    """Append a state change for `name` if warranted. Returns True if an entry was appended."""
    if previous_value == next_value:
        logger.debug("Order %s %s unchanged (%s)", order.number, name, next_value)
        return False
    if not order.persisted:
        logger.debug(
            "Order %s not persisted yet, %s %s -> %s not audited",
            order.number, name, previous_value, next_value,
        )
        return False
    order.state_changed(name, previous_value, next_value)
    logger.info("Order %s %s: %s -> %s", order.number, name, previous_value, next_value)
    return True
