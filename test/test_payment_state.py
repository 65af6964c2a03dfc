"""
Payment state engine: derivation rules and the payment_state audit trail.
"""
from decimal import Decimal

import pytest

from _helper import StubPayments, build_order, build_payment
from reconciler.models import PaymentQueries, Payments
from reconciler.payment_state import (
    BALANCE_DUE,
    CREDIT_OWED,
    FAILED,
    PAID,
    VOID,
    infer_payment_state,
    is_known_payment_state,
    update_payment_state,
)


def test_failed_when_no_valid_payments():
    order = build_order(total=30, payment_total=0, payments=[build_payment(30, state="failed")])

    assert update_payment_state(order) == FAILED
    assert order.payment_state == FAILED


def test_failed_regardless_of_totals():
    for total, payment_total in [(0, 0), (1, 2), (2, 1), (30, 30)]:
        state = infer_payment_state(
            Decimal(total), Decimal(payment_total), "complete", StubPayments(present=True, valid=0)
        )
        assert state == FAILED


@pytest.mark.parametrize(
    "total, payment_total, expected",
    [
        ("1", "2", CREDIT_OWED),
        ("2", "1", BALANCE_DUE),
        ("30", "30", PAID),
    ],
)
def test_state_from_totals(total, payment_total, expected):
    order = build_order(
        total=total,
        payment_total=payment_total,
        lifecycle_state="complete",
        payments=[build_payment(payment_total)],
    )

    assert update_payment_state(order) == expected


def test_order_without_payment_records_follows_balance():
    order = build_order(total=1, payment_total=2)

    assert update_payment_state(order) == CREDIT_OWED


def test_exact_decimal_comparison():
    order = build_order(
        total=Decimal("0.30"),
        payment_total=Decimal("0.1") + Decimal("0.2"),
        payments=[build_payment("0.30")],
    )

    assert update_payment_state(order) == PAID


def test_negative_totals_flow_through():
    order = build_order(total=-5, payment_total=0, payments=[build_payment(0, state="pending")])

    assert update_payment_state(order) == CREDIT_OWED


class TestCanceledOrder:
    def test_unpaid_is_void(self):
        order = build_order(lifecycle_state="canceled", total=30, payment_total=0)

        assert update_payment_state(order) == VOID

    def test_paid_is_credit_owed(self):
        order = build_order(lifecycle_state="canceled", total=30, payment_total=30)
        payments = StubPayments(present=True, valid=1, completed=1)

        assert update_payment_state(order, payments) == CREDIT_OWED

    def test_refunded_is_void(self):
        order = build_order(lifecycle_state="canceled", total=30, payment_total=0)
        payments = StubPayments(present=True, valid=1, completed=1)

        assert update_payment_state(order, payments) == VOID

    def test_invalidated_payments_with_nothing_collected_is_void(self):
        order = build_order(
            lifecycle_state="canceled",
            total=30,
            payment_total=0,
            payments=[build_payment(30, state="void")],
        )

        assert update_payment_state(order) == VOID

    def test_partially_collected_is_credit_owed(self):
        order = build_order(
            lifecycle_state="canceled",
            total=30,
            payment_total=10,
            payments=[build_payment(10)],
        )

        assert update_payment_state(order) == CREDIT_OWED

    def test_collected_without_any_valid_payment_is_failed(self):
        order = build_order(
            lifecycle_state="canceled",
            total=30,
            payment_total=30,
            payments=[build_payment(30, state="failed")],
        )

        assert update_payment_state(order) == FAILED


class TestStateChanges:
    def test_persisted_order_records_change(self):
        order = build_order(total=30, payment_total=30, persisted=True, payment_state="previous_to_paid")

        update_payment_state(order)

        assert len(order.state_changes) == 1
        change = order.state_changes[0]
        assert change.name == "payment_state"
        assert change.previous_value == "previous_to_paid"
        assert change.next_value == PAID

    def test_new_order_records_nothing(self):
        order = build_order(total=30, payment_total=30, persisted=False, payment_state="previous_to_paid")

        update_payment_state(order)

        assert order.payment_state == PAID
        assert order.state_changes == []

    def test_unchanged_state_records_nothing(self):
        order = build_order(total=30, payment_total=30, persisted=True, payment_state=PAID)

        update_payment_state(order)

        assert order.state_changes == []

    def test_second_run_is_idempotent(self):
        order = build_order(total=2, payment_total=1, persisted=True, payment_state=PAID)

        first = update_payment_state(order)
        second = update_payment_state(order)

        assert first == second == BALANCE_DUE
        assert len(order.state_changes) == 1

    def test_one_entry_per_transition(self):
        order = build_order(total=30, payment_total=10, persisted=True, payment_state=None)

        update_payment_state(order)
        order.payment_total = Decimal("30")
        update_payment_state(order)

        assert [(c.previous_value, c.next_value) for c in order.state_changes] == [
            (None, BALANCE_DUE),
            (BALANCE_DUE, PAID),
        ]


def test_legacy_states_are_not_known():
    assert is_known_payment_state(PAID)
    assert not is_known_payment_state("previous_to_paid")
    assert not is_known_payment_state(None)


def test_canceled_order_without_payment_records_follows_balance():
    order = build_order(lifecycle_state="canceled", total=30, payment_total=30)

    assert update_payment_state(order) == PAID


def test_payment_queries_implementations():
    assert isinstance(Payments([build_payment(5)]), PaymentQueries)
    assert isinstance(StubPayments(), PaymentQueries)


def test_legacy_state_is_replaced_and_audited_verbatim():
    legacy = "awaiting_manual_reconciliation_from_old_checkout"
    order = build_order(total=30, payment_total=30, persisted=True, payment_state=legacy)

    assert update_payment_state(order) == PAID
    assert order.state_changes[0].previous_value == legacy
