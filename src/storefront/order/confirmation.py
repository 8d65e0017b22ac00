"""Order lookups for the confirmation view and order history."""

import structlog
from protean.exceptions import InvalidOperationError

from storefront.order.order import ORDER_COLLECTION, Order
from storefront.persistence import LocalStore
from storefront.store.client import EntityStoreClient, SearchRequest, where

logger = structlog.get_logger(__name__)

LATEST_ORDER_KEY = "latest-order-id"


class OrderConfirmation:
    def __init__(self, store: EntityStoreClient, local_store: LocalStore):
        self.store = store
        self.local_store = local_store

    def remember(self, order_id: str) -> None:
        """Record the last placed order so a later session can still confirm it."""
        self.local_store.write(LATEST_ORDER_KEY, order_id)

    def last_order_id(self) -> str | None:
        return self.local_store.read(LATEST_ORDER_KEY)

    async def lookup(self, order_id: str | None = None) -> Order:
        """Fetch an order by explicit id, falling back to the last placed order."""
        order_id = order_id or self.last_order_id()
        if not order_id:
            raise InvalidOperationError("No order to confirm")

        record = await self.store.get(ORDER_COLLECTION, order_id)
        logger.debug("Order loaded", order_id=order_id)
        return Order.from_record(record)

    async def orders_for_user(self, user_id: str, limit: int | None = None, offset: int | None = None) -> list[Order]:
        result = await self.store.search(
            ORDER_COLLECTION,
            SearchRequest(
                conditions=[where("user_id", "eq", user_id)],
                limit=limit,
                offset=offset,
                order_by="-created_at",
            ),
        )
        return [Order.from_record(record) for record in result.items]
