"""
Payment state engine. The payment state is derived from totals, payment records and
cancellation; it is never assigned directly by callers.

Payment state is an open set: the known states below plus legacy custom strings
found in historical data, which are carried through untouched until the next recompute.
"""
from decimal import Decimal

from reconciler.models import CANCELED, Order, PaymentQueries
from reconciler.state_changes import track_state_change

BALANCE_DUE = "balance_due"
PAID = "paid"
CREDIT_OWED = "credit_owed"
VOID = "void"
FAILED = "failed"

# Any string: one of KNOWN_PAYMENT_STATES, or a legacy value read back from storage
PaymentState = str

KNOWN_PAYMENT_STATES: frozenset[str] = frozenset({BALANCE_DUE, PAID, CREDIT_OWED, VOID, FAILED})

PAYMENT_STATE_CHANGE = "payment_state"


def is_known_payment_state(state: str | None) -> bool:
    """False for None and for legacy/custom states."""
    return state in KNOWN_PAYMENT_STATES


def state_from_balance(balance: Decimal) -> PaymentState:
    """balance = amount still owed by the customer; negative means we owe them."""
    if balance > 0:
        return BALANCE_DUE
    if balance < 0:
        return CREDIT_OWED
    return PAID


def infer_payment_state(
    total: Decimal,
    payment_total: Decimal,
    lifecycle_state: str | None,
    payments: PaymentQueries,
) -> PaymentState:
    """
    First match wins:
    - canceled and nothing collected -> void
    - canceled with valid or completed payments -> funds collected are owed back
    - payments recorded but none valid -> failed
    - otherwise by outstanding balance (total - payment_total)
    """
    if lifecycle_state == CANCELED:
        if payment_total == 0:
            return VOID
        if payments.valid_count() > 0 or payments.completed_count() > 0:
            return state_from_balance(-payment_total)

    if payments.present() and payments.valid_count() == 0:
        return FAILED

    return state_from_balance(total - payment_total)


def update_payment_state(order: Order, payments: PaymentQueries | None = None) -> PaymentState:
    """
    Recompute and assign order.payment_state, auditing the transition.
    `payments` defaults to the order's own payment records.
    """
    if payments is None:
        payments = order.payment_records()
    last_payment_state = order.payment_state
    order.payment_state = infer_payment_state(
        order.total,
        order.payment_total,
        order.lifecycle_state,
        payments,
    )
    track_state_change(order, PAYMENT_STATE_CHANGE, last_payment_state, order.payment_state)
    return order.payment_state
