"""
Order aggregate as seen by the reconciler: totals, payments, shipments, addresses, audit trail.
Loaded and persisted by the storage layer (db.py); mutated in memory by the updater.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

# Order lifecycle state the reconciler interprets; every other lifecycle value is opaque.
CANCELED = "canceled"

# Payment states that exclude a payment from the "valid" set
INVALID_PAYMENT_STATES = frozenset({"failed", "void", "invalid"})
COMPLETED_PAYMENT_STATE = "completed"


class Address(BaseModel):
    firstname: str | None = None
    lastname: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    zipcode: str | None = None
    phone: str | None = None
    state_name: str | None = None
    country: str | None = None

    def is_blank(self) -> bool:
        return not any(value for value in self.model_dump().values())


class Enterprise(BaseModel):
    id: int | None = None
    name: str = ""
    address: Address | None = None


class ShippingMethod(BaseModel):
    name: str = ""
    requires_ship_address: bool = True


class ShippingRate(BaseModel):
    shipping_method: ShippingMethod
    selected: bool = False


class Shipment(BaseModel):
    number: str | None = None
    state: str = "pending"
    shipping_rates: list[ShippingRate] = Field(default_factory=list)


class Payment(BaseModel):
    amount: Decimal = Decimal("0")
    state: str = "checkout"

    @property
    def valid(self) -> bool:
        return self.state not in INVALID_PAYMENT_STATES

    @property
    def completed(self) -> bool:
        return self.state == COMPLETED_PAYMENT_STATE


@runtime_checkable
class PaymentQueries(Protocol):
    """What the payment engine asks of an order's payments."""

    def present(self) -> bool: ...

    def valid_count(self) -> int: ...

    def completed_count(self) -> int: ...


class Payments:
    """PaymentQueries over the order's own payment records, plus the completed total used by totals.py."""

    def __init__(self, records: list[Payment]):
        self._records = records

    def present(self) -> bool:
        return bool(self._records)

    def valid_count(self) -> int:
        return sum(1 for p in self._records if p.valid)

    def completed_count(self) -> int:
        return sum(1 for p in self._records if p.valid and p.completed)

    def completed_total(self) -> Decimal:
        return sum((p.amount for p in self._records if p.valid and p.completed), Decimal("0"))


class LineItem(BaseModel):
    variant: str = ""
    price: Decimal = Decimal("0")
    quantity: int = 1

    @property
    def amount(self) -> Decimal:
        return self.price * self.quantity


class StateChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    previous_value: str | None = None
    next_value: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Order(BaseModel):
    number: str
    lifecycle_state: str = "cart"
    persisted: bool = False

    total: Decimal = Decimal("0")
    item_total: Decimal = Decimal("0")
    adjustment_total: Decimal = Decimal("0")
    payment_total: Decimal = Decimal("0")

    payment_state: str | None = None
    shipment_state: str | None = None

    ship_address: Address | None = None
    distributor: Enterprise | None = None
    shipments: list[Shipment] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    line_items: list[LineItem] = Field(default_factory=list)
    state_changes: list[StateChange] = Field(default_factory=list)

    def payment_records(self) -> Payments:
        return Payments(self.payments)

    def state_changed(self, name: str, previous_value: str | None, next_value: str | None) -> StateChange:
        """Append one audit entry. Existing entries are never modified or removed."""
        change = StateChange(name=name, previous_value=previous_value, next_value=next_value)
        self.state_changes.append(change)
        return change
