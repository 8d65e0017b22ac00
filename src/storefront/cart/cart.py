"""Shopping cart aggregate: line items, derived totals and lifecycle status.

The cart is the local, authoritative copy of a buyer's selection. Totals are
never adjusted incrementally: every mutator recomputes them from the full
line list inside one ``atomic_change`` so they cannot drift from the lines.

State Machine:
    NEW → ACTIVE → CHECKING_OUT → CONVERTED
    CHECKING_OUT → ACTIVE (checkout cancelled, the only backward edge)
"""

import time
from decimal import Decimal as D
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Decimal, HasMany, Identifier, Integer, Status, String

from storefront.domain import shop


class CartStatus(Enum):
    NEW = "NEW"
    ACTIVE = "ACTIVE"
    CHECKING_OUT = "CHECKING_OUT"
    CONVERTED = "CONVERTED"


def _new_cart_id() -> str:
    return f"cart_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


def _new_line_id() -> str:
    return str(uuid4())


@shop.value_object
class Product:
    """A catalog item as the cart sees it. The catalog itself lives elsewhere."""

    sku = String(required=True, max_length=64, sanitize=False)
    name = String(required=True, sanitize=False)
    price = Decimal(required=True, min_value=0)


@shop.entity(part_of="ShoppingCart")
class CartLine:
    """One sku's quantity and subtotal within the cart."""

    line_id = Identifier(identifier=True, default=_new_line_id)
    sku = String(required=True, max_length=64, sanitize=False)
    name = String(required=True, sanitize=False)
    unit_price = Decimal(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    line_total = Decimal(required=True, min_value=0)

    @classmethod
    def for_product(cls, product: Product, quantity: int) -> "CartLine":
        return cls(
            sku=product.sku,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
            line_total=product.price * quantity,
        )

    def reprice(self, unit_price: D, quantity: int) -> None:
        self.unit_price = unit_price
        self.quantity = quantity
        self.line_total = unit_price * quantity

    def to_record(self) -> dict:
        return {
            "line_id": self.line_id,
            "sku": self.sku,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "line_total": str(self.line_total),
        }


@shop.aggregate
class ShoppingCart:
    cart_id = Identifier(identifier=True, default=_new_cart_id)
    owner_id = Identifier()
    lines = HasMany(CartLine)
    total_items = Integer(default=0, min_value=0)
    grand_total = Decimal(default=D("0"), min_value=0)
    status = Status(
        CartStatus,
        default=CartStatus.NEW,
        transitions={
            CartStatus.NEW: [CartStatus.ACTIVE],
            CartStatus.ACTIVE: [CartStatus.CHECKING_OUT],
            CartStatus.CHECKING_OUT: [CartStatus.ACTIVE, CartStatus.CONVERTED],
        },
    )

    @invariant.post
    def one_line_per_sku(self):
        skus = [line.sku for line in self.lines]
        if len(skus) != len(set(skus)):
            raise ValidationError({"cart": ["A cart holds at most one line per sku"]})

    @invariant.post
    def totals_must_match_lines(self):
        for line in self.lines:
            if line.line_total != line.unit_price * line.quantity:
                raise ValidationError({"cart": [f"Line total for {line.sku} does not match unit price and quantity"]})
        if self.total_items != sum(line.quantity for line in self.lines):
            raise ValidationError({"cart": ["total_items does not match the line quantities"]})
        if self.grand_total != sum((line.line_total for line in self.lines), D("0")):
            raise ValidationError({"cart": ["grand_total does not match the line totals"]})

    # -------------------------------------------------------------------
    # Factory and serialization
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_id: str | None = None) -> "ShoppingCart":
        return cls(owner_id=owner_id, lines=[], status=CartStatus.NEW.value)

    @classmethod
    def from_record(cls, record: dict) -> "ShoppingCart":
        """Rebuild a cart from its serialized form, checking every invariant."""
        record = dict(record)
        record["lines"] = [dict(line) for line in record.get("lines") or []]
        return cls(**record)

    def to_record(self) -> dict:
        return {
            "cart_id": self.cart_id,
            "owner_id": self.owner_id,
            "lines": [line.to_record() for line in self.lines],
            "total_items": self.total_items,
            "grand_total": str(self.grand_total),
            "status": self.status,
        }

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, sku: str) -> CartLine | None:
        return next((line for line in self.lines if line.sku == sku), None)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product: Product, quantity: int = 1) -> None:
        """Add ``quantity`` of a product, merging into the existing line for its sku.

        A merged line is repriced at the price passed in, so repeated adds
        always reflect the latest known price.
        """
        self._ensure_editable()
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        with atomic_change(self):
            existing = self.line_for(product.sku)
            if existing:
                existing.reprice(product.price, existing.quantity + quantity)
            else:
                self.add_lines(CartLine.for_product(product, quantity))

            if self.status == CartStatus.NEW.value:
                self.status = CartStatus.ACTIVE.value

            self._recompute_totals()

    def update_quantity(self, sku: str, quantity: int) -> None:
        """Replace a line's quantity. Zero or less removes the line."""
        self._ensure_editable()
        if quantity <= 0:
            self.remove_item(sku)
            return

        line = self.line_for(sku)
        if line is None:
            return

        with atomic_change(self):
            line.reprice(line.unit_price, quantity)
            self._recompute_totals()

    def remove_item(self, sku: str) -> None:
        self._ensure_editable()
        line = self.line_for(sku)
        if line is None:
            return

        with atomic_change(self):
            self.remove_lines(line)
            self._recompute_totals()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def open_checkout(self) -> None:
        if self.is_empty:
            raise ValidationError({"cart": ["Cannot check out an empty cart"]})
        if self.status == CartStatus.CHECKING_OUT.value:
            return
        self.status = CartStatus.CHECKING_OUT.value

    def cancel_checkout(self) -> None:
        if self.status in (CartStatus.NEW.value, CartStatus.ACTIVE.value):
            return
        self.status = CartStatus.ACTIVE.value

    def convert(self) -> None:
        self.status = CartStatus.CONVERTED.value

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _ensure_editable(self) -> None:
        if self.status == CartStatus.CONVERTED.value:
            raise ValidationError({"status": ["A converted cart can no longer be modified"]})

    def _recompute_totals(self) -> None:
        self.total_items = sum(line.quantity for line in self.lines)
        self.grand_total = sum((line.line_total for line in self.lines), D("0"))
