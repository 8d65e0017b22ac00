"""Cart state machine: the single owner of the current cart.

Commands are applied synchronously in call order. After every mutation the
cart is saved to the local repository before control returns, so a restart
recovers the last committed state even if the remote mirror never caught up.
Item mutations (and cart creation) also hand a snapshot to the sync
coordinator; that part is fire-and-forget.
"""

import structlog
from protean.exceptions import InvalidOperationError, ValidationError

from storefront.cart.cart import Product, ShoppingCart
from storefront.cart.repository import CartRepository
from storefront.cart.sync import CartSyncCoordinator

logger = structlog.get_logger(__name__)


class CartStateMachine:
    def __init__(self, repository: CartRepository, sync: CartSyncCoordinator | None = None):
        self.repository = repository
        self.sync = sync
        self._cart = repository.load()

    @property
    def cart(self) -> ShoppingCart | None:
        """A copy of the current cart; mutate only through the commands below."""
        return None if self._cart is None else ShoppingCart.from_record(self._cart.to_record())

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def create_cart(self, owner_id: str | None = None) -> ShoppingCart:
        """Start a cart. Returns the existing one untouched if there already is one."""
        if self._cart is not None:
            return self.cart

        self._cart = ShoppingCart.create(owner_id=owner_id)
        logger.info("Cart created", cart_id=self._cart.cart_id)
        return self._commit(sync=True)

    def add_item(self, product: Product, quantity: int = 1) -> ShoppingCart:
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if self._cart is None:
            self.create_cart()

        self._cart.add_item(product, quantity)
        logger.debug("Item added", cart_id=self._cart.cart_id, sku=product.sku, quantity=quantity)
        return self._commit(sync=True)

    def update_quantity(self, sku: str, quantity: int) -> ShoppingCart | None:
        if self._cart is None:
            return None

        self._cart.update_quantity(sku, quantity)
        logger.debug("Quantity updated", cart_id=self._cart.cart_id, sku=sku, quantity=quantity)
        return self._commit(sync=True)

    def remove_item(self, sku: str) -> ShoppingCart | None:
        if self._cart is None:
            return None

        self._cart.remove_item(sku)
        logger.debug("Item removed", cart_id=self._cart.cart_id, sku=sku)
        return self._commit(sync=True)

    def open_checkout(self) -> ShoppingCart:
        if self._cart is None:
            raise ValidationError({"cart": ["Cannot check out an empty cart"]})

        self._cart.open_checkout()
        logger.info("Checkout opened", cart_id=self._cart.cart_id)
        return self._commit()

    def cancel_checkout(self) -> ShoppingCart | None:
        if self._cart is None:
            return None

        self._cart.cancel_checkout()
        logger.info("Checkout cancelled", cart_id=self._cart.cart_id)
        return self._commit()

    def convert_cart(self) -> ShoppingCart:
        """Mark the cart converted. Only call once the order has been persisted."""
        if self._cart is None:
            raise InvalidOperationError("There is no cart to convert")

        self._cart.convert()
        logger.info("Cart converted", cart_id=self._cart.cart_id)
        return self._commit()

    def clear_cart(self) -> None:
        """Discard the cart; the next add starts again from NEW."""
        if self._cart is not None:
            logger.info("Cart cleared", cart_id=self._cart.cart_id)
        self._cart = None
        self.repository.save(None)
        if self.sync is not None:
            self.sync.discard()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _commit(self, sync: bool = False) -> ShoppingCart:
        self.repository.save(self._cart)
        if sync and self.sync is not None:
            self.sync.submit(self._cart)
        return self.cart
