"""Best-effort mirroring of the local cart into the entity store.

Local state stays the ground truth while the cart lives; the remote copy is
there for cross-session recovery and for checkout's own lookups.

Every ``submit`` tags a snapshot with a sequence number and schedules a drain
on the running event loop without waiting for it. Drains run one at a time
and only push the newest snapshot, so a slow early write can never land after
(and overwrite) a later one, and queued snapshots that were superseded are
dropped. Failures are recorded on ``last_error`` and logged; nothing is
rolled back. A failed snapshot is pushed again by the next ``flush()`` (or
superseded by the next submit), so a flush after the store recovers leaves
the remote cart current.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from storefront.cart.cart import ShoppingCart
from storefront.store.client import EntityStoreClient
from storefront.store.errors import EntityNotFound, StoreError

logger = structlog.get_logger(__name__)

CART_COLLECTION = "Cart"


@dataclass(frozen=True)
class SyncIntent:
    sequence: int
    cart_id: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class SyncFailure:
    cart_id: str
    sequence: int
    operation: str  # "get", "create" or "update"
    message: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class CartSyncCoordinator:
    def __init__(self, store: EntityStoreClient, collection: str = CART_COLLECTION):
        self.store = store
        self.collection = collection
        self.last_error: SyncFailure | None = None
        self.synced_sequence = 0
        self._sequence = 0
        self._attempted = 0
        self._latest: SyncIntent | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._latest is not None and self._latest.sequence > self._attempted

    def submit(self, cart: ShoppingCart) -> SyncIntent:
        self._sequence += 1
        intent = SyncIntent(sequence=self._sequence, cart_id=cart.cart_id, payload=cart.to_record())
        self._latest = intent

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the intent waits for the next flush()
            logger.debug("Cart sync deferred", cart_id=intent.cart_id, sequence=intent.sequence)
            return intent

        task = loop.create_task(self._drain())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return intent

    def discard(self) -> None:
        """Drop any snapshot that has not started syncing yet.

        A write already in flight is not interrupted.
        """
        self._sequence += 1
        self._attempted = self._sequence
        self._latest = None

    async def flush(self) -> None:
        """Wait for scheduled syncs, then push the latest snapshot if the remote copy is behind it."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
        await self._drain(retry=True)

    async def _drain(self, retry: bool = False) -> None:
        async with self._lock:
            intent = self._latest
            if intent is None:
                return
            # A retry re-pushes an attempted snapshot that never landed
            behind = retry and self.synced_sequence < intent.sequence
            if intent.sequence <= self._attempted and not behind:
                return
            self._attempted = intent.sequence
            await self._push(intent)

    async def _push(self, intent: SyncIntent) -> None:
        log = logger.bind(cart_id=intent.cart_id, sequence=intent.sequence)
        operation = "get"
        try:
            try:
                await self.store.get(self.collection, intent.cart_id)
            except EntityNotFound:
                operation = "create"
                await self.store.create(self.collection, intent.payload, entity_id=intent.cart_id)
            else:
                operation = "update"
                await self.store.update(self.collection, intent.cart_id, intent.payload)
        except StoreError as exc:
            self.last_error = SyncFailure(
                cart_id=intent.cart_id,
                sequence=intent.sequence,
                operation=operation,
                message=str(exc),
            )
            log.warning("Cart sync failed", operation=operation, error=str(exc))
            return

        self.last_error = None
        self.synced_sequence = intent.sequence
        log.debug("Cart synced", operation=operation)
