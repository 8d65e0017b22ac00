"""Pydantic request/response schemas for the storefront API.

These are the external contract, kept separate from the domain models they
are translated to and from.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from storefront.cart.cart import ShoppingCart
from storefront.cart.sync import SyncFailure
from storefront.checkout.orchestrator import CheckoutReceipt
from storefront.order.order import Order


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ProductSchema(BaseModel):
    sku: str = Field(min_length=1)
    name: str
    price: Decimal = Field(ge=0)


class CartLineSchema(BaseModel):
    sku: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class AddressSchema(BaseModel):
    line1: str
    city: str
    postcode: str
    country: str


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    owner_id: str | None = None


class AddItemRequest(BaseModel):
    product: ProductSchema
    quantity: int = Field(ge=1, default=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product": {"sku": "SKU-001", "name": "Desk Lamp", "price": "24.50"},
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateQuantityRequest(BaseModel):
    quantity: int  # Zero or less removes the line


class SyncErrorSchema(BaseModel):
    sequence: int
    operation: str
    message: str
    occurred_at: datetime

    @classmethod
    def from_failure(cls, failure: SyncFailure | None) -> "SyncErrorSchema | None":
        if failure is None:
            return None
        return cls(
            sequence=failure.sequence,
            operation=failure.operation,
            message=failure.message,
            occurred_at=failure.occurred_at,
        )


class CartResponse(BaseModel):
    cart_id: str | None = None
    owner_id: str | None = None
    lines: list[CartLineSchema] = Field(default_factory=list)
    total_items: int = 0
    grand_total: Decimal = Decimal("0")
    status: str = "NEW"
    last_sync_error: SyncErrorSchema | None = None

    @classmethod
    def from_cart(cls, cart: ShoppingCart | None, sync_error: SyncFailure | None = None) -> "CartResponse":
        if cart is None:
            return cls(last_sync_error=SyncErrorSchema.from_failure(sync_error))
        return cls(
            cart_id=cart.cart_id,
            owner_id=cart.owner_id,
            lines=[CartLineSchema(**line.to_record()) for line in cart.lines],
            total_items=cart.total_items,
            grand_total=cart.grand_total,
            status=cart.status,
            last_sync_error=SyncErrorSchema.from_failure(sync_error),
        )


# ---------------------------------------------------------------------------
# Checkout and orders
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    name: str
    email: str
    phone: str
    address: AddressSchema

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Jane Doe",
                    "email": "jane@example.com",
                    "phone": "+1 555 123 4567",
                    "address": {
                        "line1": "123 Business Street",
                        "city": "New York",
                        "postcode": "10001",
                        "country": "US",
                    },
                }
            ]
        }
    }


class OrderTotalsSchema(BaseModel):
    items: Decimal
    grand: Decimal


class OrderResponse(BaseModel):
    order_id: str | None
    order_number: str
    user_id: str
    shipping_address_id: str
    lines: list[CartLineSchema]
    totals: OrderTotalsSchema
    status: str
    created_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.order_id,
            order_number=order.order_number,
            user_id=order.user_id,
            shipping_address_id=order.shipping_address_id,
            lines=[CartLineSchema(**line.model_dump()) for line in order.lines],
            totals=OrderTotalsSchema(items=order.totals.items, grand=order.totals.grand),
            status=order.status.value,
            created_at=order.created_at,
        )


class CheckoutResponse(BaseModel):
    order: OrderResponse
    user_id: str
    address_id: str
    user_created: bool

    @classmethod
    def from_receipt(cls, receipt: CheckoutReceipt) -> "CheckoutResponse":
        return cls(
            order=OrderResponse.from_order(receipt.order),
            user_id=receipt.user_id,
            address_id=receipt.address_id,
            user_created=receipt.user_created,
        )


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict | None = None
