"""Checkout orchestration: converts the current cart into a persisted order.

Flow (each step must succeed before the next starts):
    1. Resolve user: search User by email; update the first match's name and
       phone, or create a new User
    2. Create address: always a fresh Address owned by the resolved user
    3. Create order: snapshot of the cart lines, status WAITING_TO_FULFILL
    4. Finalize cart: remote Cart status → CONVERTED, then the local cart is
       converted and cleared

The sequence is not transactional. A failure after step 1 leaves the User
(and possibly the Address) behind in the store; nothing is compensated. A
failure in step 4 means the order exists but the local cart was not cleared,
which needs manual reconciliation. Every failure raises one CheckoutError and
leaves the local cart as it was so the buyer can retry.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from protean.exceptions import InvalidOperationError, ValidationError

from storefront.cart.cart import CartStatus, ShoppingCart
from storefront.cart.machine import CartStateMachine
from storefront.cart.sync import CART_COLLECTION, CartSyncCoordinator
from storefront.checkout.contact import Contact, ShippingAddress
from storefront.exceptions import CheckoutError
from storefront.order.confirmation import OrderConfirmation
from storefront.order.order import ORDER_COLLECTION, Order, OrderNumberGenerator
from storefront.store.client import EntityStoreClient, SearchRequest, where
from storefront.store.errors import EntityNotFound, StoreError

logger = structlog.get_logger(__name__)

USER_COLLECTION = "User"
ADDRESS_COLLECTION = "Address"


class CheckoutStep(Enum):
    RESOLVE_USER = "resolve_user"
    CREATE_ADDRESS = "create_address"
    CREATE_ORDER = "create_order"
    FINALIZE_CART = "finalize_cart"


_STEP_MESSAGES = {
    CheckoutStep.RESOLVE_USER: "Failed to process user information",
    CheckoutStep.CREATE_ADDRESS: "Failed to create shipping address",
    CheckoutStep.CREATE_ORDER: "Failed to create order",
}


@dataclass(frozen=True)
class CheckoutReceipt:
    order: Order
    user_id: str
    address_id: str
    user_created: bool


class CheckoutOrchestrator:
    def __init__(
        self,
        store: EntityStoreClient,
        machine: CartStateMachine,
        sync: CartSyncCoordinator | None = None,
        confirmation: OrderConfirmation | None = None,
        order_numbers: OrderNumberGenerator | None = None,
    ):
        self.store = store
        self.machine = machine
        self.sync = sync
        self.confirmation = confirmation
        self.order_numbers = order_numbers or OrderNumberGenerator()
        self._in_progress: set[str] = set()

    async def checkout(self, contact: Contact) -> CheckoutReceipt:
        cart = self.machine.cart
        if cart is None or cart.is_empty:
            raise ValidationError({"cart": ["Your cart is empty"]})
        if cart.status == CartStatus.CONVERTED.value:
            raise InvalidOperationError(f"Cart {cart.cart_id} has already been converted")
        if cart.cart_id in self._in_progress:
            raise InvalidOperationError(f"Checkout for cart {cart.cart_id} is already in progress")

        self._in_progress.add(cart.cart_id)
        try:
            return await self._run(contact)
        finally:
            self._in_progress.discard(cart.cart_id)

    async def _run(self, contact: Contact) -> CheckoutReceipt:
        # Lines are frozen here; edits made while remote calls are pending do not reach the order
        cart = self.machine.open_checkout()
        log = logger.bind(cart_id=cart.cart_id)
        log.info("Checkout started", lines=len(cart.lines), grand_total=str(cart.grand_total))

        if self.sync is not None:
            await self.sync.flush()

        try:
            user_id, user_created = await self._resolve_user(contact)
        except StoreError as exc:
            raise self._failure(log, CheckoutStep.RESOLVE_USER, exc) from exc

        try:
            address_id = await self._create_address(user_id, contact.address)
        except StoreError as exc:
            raise self._failure(log, CheckoutStep.CREATE_ADDRESS, exc) from exc

        order = Order.snapshot(
            cart,
            user_id=user_id,
            shipping_address_id=address_id,
            order_number=self.order_numbers.next(),
        )
        try:
            result = await self.store.create(ORDER_COLLECTION, order.to_payload())
        except StoreError as exc:
            raise self._failure(log, CheckoutStep.CREATE_ORDER, exc) from exc

        order = order.model_copy(update={"order_id": result.id})
        log.info("Order created", order_id=order.order_id, order_number=order.order_number)
        if self.confirmation is not None:
            self.confirmation.remember(order.order_id)

        try:
            await self._finalize_remote_cart(cart)
        except StoreError as exc:
            log.error(
                "Order placed but cart not finalized",
                order_id=order.order_id,
                error=str(exc),
            )
            raise CheckoutError(
                CheckoutStep.FINALIZE_CART,
                f"Order {order.order_number} was placed but the cart could not be finalized",
                order_id=order.order_id,
            ) from exc

        self.machine.convert_cart()
        self.machine.clear_cart()
        log.info("Checkout completed", order_id=order.order_id)

        return CheckoutReceipt(order=order, user_id=user_id, address_id=address_id, user_created=user_created)

    async def _resolve_user(self, contact: Contact) -> tuple[str, bool]:
        """Find the user by email (the natural key) or register a new one."""
        found = await self.store.search(
            USER_COLLECTION,
            SearchRequest(conditions=[where("email", "eq", contact.email)], limit=1),
        )
        if found.items:
            user_id = str(found.items[0]["id"])
            await self.store.update(USER_COLLECTION, user_id, {"name": contact.name, "phone": contact.phone})
            logger.debug("Existing user updated", user_id=user_id)
            return user_id, False

        result = await self.store.create(
            USER_COLLECTION,
            {"name": contact.name, "email": contact.email, "phone": contact.phone},
        )
        logger.debug("User created", user_id=result.id)
        return result.id, True

    async def _create_address(self, user_id: str, address: ShippingAddress) -> str:
        result = await self.store.create(ADDRESS_COLLECTION, {"user_id": user_id, **address.model_dump()})
        return result.id

    async def _finalize_remote_cart(self, cart: ShoppingCart) -> None:
        """Mark the remote cart converted, writing the whole snapshot if it never reached the store."""
        converted = CartStatus.CONVERTED.value
        try:
            await self.store.update(CART_COLLECTION, cart.cart_id, {"status": converted})
        except EntityNotFound:
            logger.warning("Remote cart missing at finalization", cart_id=cart.cart_id)
            await self.store.create(
                CART_COLLECTION,
                {**cart.to_record(), "status": converted},
                entity_id=cart.cart_id,
            )

    @staticmethod
    def _failure(log, step: CheckoutStep, exc: StoreError) -> CheckoutError:
        log.warning("Checkout step failed", step=step.value, error=str(exc))
        return CheckoutError(step, _STEP_MESSAGES[step])
