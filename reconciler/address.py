"""
Pre-save repair of the delivery address.

Orders shipped with a method that does not need a delivery address (e.g. pickup)
still need a ship address on record; the distributor's address is used as a last resort.
Orders that only use address-requiring methods keep whatever address the caller gave,
complete or not: validation downstream rejects incomplete ones.
"""
import logging

from reconciler.models import Order

logger = logging.getLogger(__name__)


def ships_without_address(order: Order) -> bool:
    """True if any shipping rate on any shipment has a method not requiring a ship address."""
    return any(
        not rate.shipping_method.requires_ship_address
        for shipment in order.shipments
        for rate in shipment.shipping_rates
    )


def repair_ship_address(order: Order) -> bool:
    """Returns True if the ship address was filled in."""
    if not ships_without_address(order):
        return False
    if order.ship_address is not None and not order.ship_address.is_blank():
        return False
    if order.distributor is None or order.distributor.address is None:
        logger.warning("Order %s has no ship address and its distributor has no address to fall back on", order.number)
        return False

    order.ship_address = order.distributor.address.model_copy(deep=True)
    logger.info("Order %s ship address filled from distributor %s", order.number, order.distributor.name or order.distributor.id)
    return True
