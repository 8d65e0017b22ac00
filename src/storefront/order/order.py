"""Order snapshot: the immutable record checkout writes to the entity store.

An Order copies the cart's lines at conversion time. Later cart changes never
reach a placed order.

State Machine:
    WAITING_TO_FULFILL → PICKING → SENT
"""

import time
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from storefront.cart.cart import ShoppingCart

ORDER_COLLECTION = "Order"


class OrderStatus(Enum):
    WAITING_TO_FULFILL = "WAITING_TO_FULFILL"
    PICKING = "PICKING"
    SENT = "SENT"

    def can_advance_to(self, target: "OrderStatus") -> bool:
        return target in _VALID_TRANSITIONS[self]


_VALID_TRANSITIONS = {
    OrderStatus.WAITING_TO_FULFILL: {OrderStatus.PICKING},
    OrderStatus.PICKING: {OrderStatus.SENT},
    OrderStatus.SENT: set(),  # Terminal
}


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    sku: str
    name: str
    unit_price: Decimal
    quantity: int = Field(ge=1)
    line_total: Decimal


class OrderTotals(BaseModel):
    """Order totals. There is no separate tax or shipping line: both equal the cart total."""

    model_config = ConfigDict(frozen=True)

    items: Decimal
    grand: Decimal


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str | None = None  # Assigned by the entity store
    order_number: str
    user_id: str
    shipping_address_id: str
    lines: tuple[OrderLine, ...]
    totals: OrderTotals
    status: OrderStatus = OrderStatus.WAITING_TO_FULFILL
    created_at: datetime

    @classmethod
    def snapshot(
        cls,
        cart: ShoppingCart,
        user_id: str,
        shipping_address_id: str,
        order_number: str,
        created_at: datetime | None = None,
    ) -> "Order":
        """Freeze the cart's current lines and total into a new order."""
        return cls(
            order_number=order_number,
            user_id=user_id,
            shipping_address_id=shipping_address_id,
            lines=tuple(
                OrderLine(
                    sku=line.sku,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                )
                for line in cart.lines
            ),
            totals=OrderTotals(items=cart.grand_total, grand=cart.grand_total),
            created_at=created_at or datetime.now(UTC),
        )

    @classmethod
    def from_record(cls, record: dict) -> "Order":
        """Rebuild an order read back from the entity store."""
        return cls.model_validate({**record, "order_id": record.get("order_id") or record.get("id")})

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude={"order_id"})


class OrderNumberGenerator:
    """Issues human-readable, time-derived order numbers (``CY<epoch-ms>``).

    Numbers increase strictly within one generator. Two processes issuing in
    the same millisecond can produce the same number.
    """

    def __init__(self, prefix: str = "CY", clock=time.time):
        self.prefix = prefix
        self._clock = clock
        self._last = 0

    def next(self) -> str:
        stamp = int(self._clock() * 1000)
        if stamp <= self._last:
            stamp = self._last + 1
        self._last = stamp
        return f"{self.prefix}{stamp}"
