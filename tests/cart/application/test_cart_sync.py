"""Application tests for CartSyncCoordinator against the in-memory entity store."""

import asyncio

import pytest
from storefront.cart.cart import ShoppingCart
from storefront.cart.machine import CartStateMachine
from storefront.cart.repository import CartRepository
from storefront.cart.sync import CART_COLLECTION, CartSyncCoordinator


def _cart(make_product, quantity=1):
    cart = ShoppingCart.create()
    cart.add_item(make_product(), quantity)
    return cart


class TestSubmitAndFlush:
    def test_submit_outside_a_loop_is_deferred(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        intent = sync.submit(_cart(make_product))
        assert intent.sequence == 1
        assert sync.pending
        assert entity_store.calls == []

    def test_flush_creates_remote_cart_under_local_id(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        cart = _cart(make_product, 2)
        sync.submit(cart)
        asyncio.run(sync.flush())

        remote = entity_store.records(CART_COLLECTION)
        assert [record["id"] for record in remote] == [cart.cart_id]
        assert remote[0]["total_items"] == 2
        assert sync.synced_sequence == 1
        assert not sync.pending

    def test_second_push_updates_existing_remote_cart(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        cart = _cart(make_product)

        async def scenario():
            sync.submit(cart)
            await sync.flush()
            cart.update_quantity("SKU-A", 4)
            sync.submit(cart)
            await sync.flush()

        asyncio.run(scenario())
        assert entity_store.calls == [
            ("get", CART_COLLECTION),
            ("create", CART_COLLECTION),
            ("get", CART_COLLECTION),
            ("update", CART_COLLECTION),
        ]
        assert entity_store.records(CART_COLLECTION)[0]["total_items"] == 4


class TestOrdering:
    def test_superseded_snapshots_are_skipped(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        cart = _cart(make_product)

        async def scenario():
            for quantity in (2, 3, 4):
                cart.update_quantity("SKU-A", quantity)
                sync.submit(cart)
            await sync.flush()

        asyncio.run(scenario())
        assert entity_store.calls == [("get", CART_COLLECTION), ("create", CART_COLLECTION)]
        assert entity_store.records(CART_COLLECTION)[0]["total_items"] == 4
        assert sync.synced_sequence == 3

    def test_slow_early_write_never_overwrites_later_one(self, slow_entity_store, make_product):
        store = slow_entity_store
        sync = CartSyncCoordinator(store)
        cart = _cart(make_product)

        async def scenario():
            sync.submit(cart)
            # Let the first push start and suspend inside the store
            await asyncio.sleep(0)
            cart.update_quantity("SKU-A", 9)
            sync.submit(cart)
            await sync.flush()

        asyncio.run(scenario())
        assert store.records(CART_COLLECTION)[0]["total_items"] == 9
        assert sync.synced_sequence == 2


class TestFailures:
    def test_failure_is_recorded_not_raised(self, entity_store, make_product):
        entity_store.fail("get", CART_COLLECTION)
        sync = CartSyncCoordinator(entity_store)
        cart = _cart(make_product)
        sync.submit(cart)
        asyncio.run(sync.flush())

        assert sync.last_error is not None
        assert sync.last_error.cart_id == cart.cart_id
        assert sync.last_error.operation == "get"
        assert sync.last_error.sequence == 1
        assert sync.synced_sequence == 0
        assert entity_store.records(CART_COLLECTION) == []

    def test_create_failure_names_the_operation(self, entity_store, make_product):
        entity_store.fail("create", CART_COLLECTION)
        sync = CartSyncCoordinator(entity_store)
        sync.submit(_cart(make_product))
        asyncio.run(sync.flush())
        assert sync.last_error.operation == "create"

    def test_failed_snapshot_is_pushed_again_on_next_flush(self, entity_store, make_product):
        entity_store.fail("create", CART_COLLECTION)
        sync = CartSyncCoordinator(entity_store)
        cart = _cart(make_product, 3)
        sync.submit(cart)

        async def scenario():
            await sync.flush()
            assert sync.last_error.operation == "create"
            entity_store.heal()
            await sync.flush()

        asyncio.run(scenario())
        assert entity_store.calls == [
            ("get", CART_COLLECTION),
            ("create", CART_COLLECTION),
            ("get", CART_COLLECTION),
            ("create", CART_COLLECTION),
        ]
        remote = entity_store.records(CART_COLLECTION)
        assert [record["id"] for record in remote] == [cart.cart_id]
        assert remote[0]["total_items"] == 3
        assert sync.last_error is None
        assert sync.synced_sequence == 1

    def test_synced_snapshot_is_not_pushed_twice(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        sync.submit(_cart(make_product))

        async def scenario():
            await sync.flush()
            await sync.flush()

        asyncio.run(scenario())
        assert entity_store.calls == [("get", CART_COLLECTION), ("create", CART_COLLECTION)]

    def test_next_successful_push_clears_error(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        cart = _cart(make_product)

        async def scenario():
            entity_store.fail("get", CART_COLLECTION)
            sync.submit(cart)
            await sync.flush()
            assert sync.last_error is not None

            entity_store.heal()
            cart.update_quantity("SKU-A", 2)
            sync.submit(cart)
            await sync.flush()

        asyncio.run(scenario())
        assert sync.last_error is None
        assert entity_store.records(CART_COLLECTION)[0]["total_items"] == 2


class TestDiscard:
    def test_discard_drops_unsynced_snapshot(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)
        sync.submit(_cart(make_product))
        sync.discard()
        assert not sync.pending

        asyncio.run(sync.flush())
        assert entity_store.calls == []

    def test_scheduled_push_after_discard_does_nothing(self, entity_store, make_product):
        sync = CartSyncCoordinator(entity_store)

        async def scenario():
            sync.submit(_cart(make_product))
            sync.discard()
            await sync.flush()

        asyncio.run(scenario())
        assert entity_store.records(CART_COLLECTION) == []


class TestMachineSubmitsSnapshots:
    @pytest.fixture()
    def wired(self, entity_store, local_store):
        sync = CartSyncCoordinator(entity_store)
        return CartStateMachine(CartRepository(local_store), sync=sync), sync

    def test_item_mutations_reach_the_store(self, wired, entity_store, make_product):
        machine, sync = wired

        async def scenario():
            machine.add_item(make_product("SKU-A"), 1)
            machine.add_item(make_product("SKU-B"), 2)
            machine.update_quantity("SKU-A", 3)
            await sync.flush()

        asyncio.run(scenario())
        remote = entity_store.records(CART_COLLECTION)[0]
        assert remote["id"] == machine.cart.cart_id
        assert remote["total_items"] == 5

    def test_lifecycle_commands_are_not_mirrored(self, wired, make_product):
        machine, sync = wired
        machine.add_item(make_product(), 1)
        sequence = sync._sequence
        machine.open_checkout()
        machine.cancel_checkout()
        assert sync._sequence == sequence

    def test_sync_failure_leaves_local_state_intact(self, wired, entity_store, local_store, make_product):
        machine, sync = wired
        entity_store.fail("get", CART_COLLECTION)

        async def scenario():
            machine.add_item(make_product(), 2)
            await sync.flush()

        asyncio.run(scenario())
        assert sync.last_error is not None
        assert machine.cart.total_items == 2
        assert machine.repository.load().total_items == 2
