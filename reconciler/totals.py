"""
Order totals recompute. Runs after the address repair and before the state derivations.
"""
from decimal import Decimal

from reconciler.models import Order


def update_totals(order: Order) -> None:
    order.payment_total = order.payment_records().completed_total()
    order.item_total = sum((item.amount for item in order.line_items), Decimal("0"))
    order.total = order.item_total + order.adjustment_total
