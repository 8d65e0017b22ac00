"""FastAPI routes for the storefront: cart commands, checkout and order lookups."""

from fastapi import APIRouter, Depends, Query, Request

from storefront.api.schemas import (
    AddItemRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    CreateCartRequest,
    OrderResponse,
    UpdateQuantityRequest,
)
from storefront.cart.cart import Product
from storefront.checkout.contact import Contact
from storefront.session import Storefront


def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront


def _cart_response(storefront: Storefront) -> CartResponse:
    return CartResponse.from_cart(storefront.cart.cart, storefront.sync.last_error)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(storefront: Storefront = Depends(get_storefront)) -> CartResponse:
    return _cart_response(storefront)


@cart_router.post("", status_code=201, response_model=CartResponse)
async def create_cart(body: CreateCartRequest, storefront: Storefront = Depends(get_storefront)) -> CartResponse:
    storefront.cart.create_cart(owner_id=body.owner_id)
    return _cart_response(storefront)


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddItemRequest, storefront: Storefront = Depends(get_storefront)) -> CartResponse:
    product = Product(sku=body.product.sku, name=body.product.name, price=body.product.price)
    storefront.cart.add_item(product, body.quantity)
    return _cart_response(storefront)


@cart_router.put("/items/{sku}", response_model=CartResponse)
async def update_cart_item_quantity(
    sku: str, body: UpdateQuantityRequest, storefront: Storefront = Depends(get_storefront)
) -> CartResponse:
    storefront.cart.update_quantity(sku, body.quantity)
    return _cart_response(storefront)


@cart_router.delete("/items/{sku}", response_model=CartResponse)
async def remove_cart_item(sku: str, storefront: Storefront = Depends(get_storefront)) -> CartResponse:
    storefront.cart.remove_item(sku)
    return _cart_response(storefront)


@cart_router.post("/checkout/open", response_model=CartResponse)
async def open_checkout(storefront: Storefront = Depends(get_storefront)) -> CartResponse:
    storefront.cart.open_checkout()
    return _cart_response(storefront)


@cart_router.post("/checkout/cancel", response_model=CartResponse)
async def cancel_checkout(storefront: Storefront = Depends(get_storefront)) -> CartResponse:
    storefront.cart.cancel_checkout()
    return _cart_response(storefront)


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest, storefront: Storefront = Depends(get_storefront)) -> CheckoutResponse:
    """Place an order for the current cart.

    1. Resolve (or register) the user by email
    2. Create the shipping address
    3. Create the order snapshot
    4. Finalize and clear the cart
    """
    contact = Contact.from_form(body.model_dump())
    receipt = await storefront.checkout.checkout(contact)
    return CheckoutResponse.from_receipt(receipt)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/confirmation", response_model=OrderResponse)
async def order_confirmation(
    order_id: str | None = None, storefront: Storefront = Depends(get_storefront)
) -> OrderResponse:
    order = await storefront.confirmation.lookup(order_id)
    return OrderResponse.from_order(order)


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(
    user_id: str,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    storefront: Storefront = Depends(get_storefront),
) -> list[OrderResponse]:
    orders = await storefront.confirmation.orders_for_user(user_id, limit=limit, offset=offset)
    return [OrderResponse.from_order(order) for order in orders]
