"""Repository for the local cart record."""

import structlog

from storefront.cart.cart import ShoppingCart
from storefront.persistence import LocalStore

logger = structlog.get_logger(__name__)

CART_STORAGE_KEY = "storefront-cart"


class CartRepository:
    """Loads and saves the single current cart under a fixed storage key."""

    def __init__(self, local_store: LocalStore, key: str = CART_STORAGE_KEY):
        self.local_store = local_store
        self.key = key

    def load(self) -> ShoppingCart | None:
        record = self.local_store.read(self.key)
        if record is None:
            return None
        cart = ShoppingCart.from_record(record)
        logger.debug("Cart restored", cart_id=cart.cart_id, status=cart.status)
        return cart

    def save(self, cart: ShoppingCart | None) -> None:
        if cart is None:
            self.local_store.delete(self.key)
        else:
            self.local_store.write(self.key, cart.to_record())
