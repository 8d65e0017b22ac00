from decimal import Decimal
from pathlib import Path

import pytest
from storefront.cart.cart import Product
from storefront.domain import shop
from storefront.order.order import OrderNumberGenerator
from storefront.persistence import MemoryStore
from storefront.session import Storefront
from storefront.store.errors import TransportError
from storefront.store.memory import InMemoryEntityStore


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_domain():
    """Initialize the storefront domain once. Elements are registered on import, so no folder traversal."""
    shop.init(traverse=False)
    yield shop


@pytest.fixture(autouse=True)
def _ctx(storefront_domain):
    with storefront_domain.domain_context():
        yield


class FlakyEntityStore(InMemoryEntityStore):
    """In-memory store that can be told to fail specific calls.

    ``fail("create", "Address")`` makes every create on Address raise until
    ``heal()`` is called. ``calls`` records ``(method, collection)`` in order.
    """

    def __init__(self, latency: float = 0.0):
        super().__init__(latency=latency)
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], Exception] = {}

    def fail(self, method: str, collection: str, exc: Exception | None = None) -> None:
        self._failures[(method, collection)] = exc or TransportError(f"{method} {collection} unavailable")

    def heal(self) -> None:
        self._failures.clear()

    def _check(self, method: str, collection: str) -> None:
        self.calls.append((method, collection))
        failure = self._failures.get((method, collection))
        if failure is not None:
            raise failure

    async def create(self, collection, entity, *, entity_id=None):
        self._check("create", collection)
        return await super().create(collection, entity, entity_id=entity_id)

    async def get(self, collection, entity_id):
        self._check("get", collection)
        return await super().get(collection, entity_id)

    async def update(self, collection, entity_id, partial):
        self._check("update", collection)
        return await super().update(collection, entity_id, partial)

    async def search(self, collection, request=None):
        self._check("search", collection)
        return await super().search(collection, request)


@pytest.fixture()
def entity_store():
    return FlakyEntityStore()


@pytest.fixture()
def slow_entity_store():
    """Entity store that suspends for 10ms on every call."""
    return FlakyEntityStore(latency=0.01)


@pytest.fixture()
def local_store():
    return MemoryStore()


@pytest.fixture()
def storefront(entity_store, local_store):
    return Storefront(entity_store, local_store, order_numbers=OrderNumberGenerator())


@pytest.fixture()
def make_product():
    def _make(sku="SKU-A", name="Desk Lamp", price="10"):
        return Product(sku=sku, name=name, price=Decimal(price))

    return _make


@pytest.fixture()
def contact_form():
    return {
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
