"""Storefront composition root.

Builds one cart session's services around an injected entity store and local
store. Whatever issues commands (the HTTP app, a test, a script) holds the
``Storefront`` and passes it along; there is no module-level cart state.
"""

import structlog

from storefront.cart.machine import CartStateMachine
from storefront.cart.repository import CartRepository
from storefront.cart.sync import CartSyncCoordinator
from storefront.checkout.orchestrator import CheckoutOrchestrator
from storefront.config import Settings
from storefront.order.confirmation import OrderConfirmation
from storefront.order.order import OrderNumberGenerator
from storefront.persistence import JsonFileStore, LocalStore
from storefront.store.client import EntityStoreClient
from storefront.store.http import HttpEntityStore
from storefront.store.memory import InMemoryEntityStore

logger = structlog.get_logger(__name__)


class Storefront:
    def __init__(
        self,
        store: EntityStoreClient,
        local_store: LocalStore,
        order_numbers: OrderNumberGenerator | None = None,
    ):
        self.store = store
        self.local_store = local_store
        self.sync = CartSyncCoordinator(store)
        self.cart = CartStateMachine(CartRepository(local_store), sync=self.sync)
        self.confirmation = OrderConfirmation(store, local_store)
        self.checkout = CheckoutOrchestrator(
            store,
            self.cart,
            sync=self.sync,
            confirmation=self.confirmation,
            order_numbers=order_numbers,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Storefront":
        if settings.store_backend == "http":
            store = HttpEntityStore(settings.api_base, token=settings.api_token, timeout=settings.api_timeout)
        else:
            store = InMemoryEntityStore()

        logger.info("Storefront configured", store=settings.store_backend, state_dir=settings.state_dir)
        return cls(store, JsonFileStore(settings.state_dir))
