"""In-process entity store used for development runs and tests."""

import asyncio
import copy
import operator
import re
from typing import Any
from uuid import uuid4

import structlog

from storefront.store.client import EntityStoreClient, Operator, SearchCondition, SearchRequest, SearchResult, WriteResult
from storefront.store.errors import EntityNotFound, RemoteRejection

logger = structlog.get_logger(__name__)

_MISSING = object()


def _resolve(record: dict[str, Any], path: str) -> Any:
    """Look up a dotted field path (``"totals.grand"``) in a record."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _like(value: Any, pattern: str) -> bool:
    regex = "".join(".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in str(pattern))
    return re.fullmatch(regex, str(value), flags=re.DOTALL) is not None


_OPERATORS = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.GT: operator.gt,
    Operator.GTE: operator.ge,
    Operator.LT: operator.lt,
    Operator.LTE: operator.le,
    Operator.LIKE: _like,
    Operator.IN: lambda value, expected: value in expected,
}


def _matches(record: dict[str, Any], condition: SearchCondition) -> bool:
    value = _resolve(record, condition.field)
    if value is _MISSING:
        return condition.operator is Operator.NE

    try:
        return _OPERATORS[condition.operator](value, condition.value)
    except TypeError:
        # Incomparable types never match
        return False


class InMemoryEntityStore(EntityStoreClient):
    """Dict-backed implementation of the entity store contract.

    ``latency`` (seconds) is awaited before every call so callers observe real
    suspension points and interleaving, as they would against a remote store.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._versions: dict[tuple[str, str], int] = {}

    async def _pause(self) -> None:
        await asyncio.sleep(self.latency)

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def _bump(self, collection: str, entity_id: str) -> WriteResult:
        key = (collection, entity_id)
        self._versions[key] = self._versions.get(key, 0) + 1
        return WriteResult(id=entity_id, version=str(self._versions[key]))

    def records(self, collection: str) -> list[dict[str, Any]]:
        """Snapshot of every entity in a collection, in insertion order."""
        return [copy.deepcopy(record) for record in self._collection(collection).values()]

    async def create(self, collection, entity, *, entity_id=None):
        await self._pause()
        entity_id = entity_id or str(uuid4())
        entities = self._collection(collection)
        if entity_id in entities:
            raise RemoteRejection(409, f"{collection} {entity_id} already exists")

        entities[entity_id] = {**copy.deepcopy(entity), "id": entity_id}
        logger.debug("Entity created", collection=collection, entity_id=entity_id)
        return self._bump(collection, entity_id)

    async def get(self, collection, entity_id):
        await self._pause()
        try:
            return copy.deepcopy(self._collection(collection)[entity_id])
        except KeyError:
            raise EntityNotFound(collection, entity_id) from None

    async def update(self, collection, entity_id, partial):
        await self._pause()
        entities = self._collection(collection)
        if entity_id not in entities:
            raise EntityNotFound(collection, entity_id)

        entities[entity_id] = {**entities[entity_id], **copy.deepcopy(partial), "id": entity_id}
        logger.debug("Entity updated", collection=collection, entity_id=entity_id)
        return self._bump(collection, entity_id)

    async def delete(self, collection, entity_id):
        await self._pause()
        entities = self._collection(collection)
        if entity_id not in entities:
            raise EntityNotFound(collection, entity_id)
        del entities[entity_id]
        self._versions.pop((collection, entity_id), None)

    async def search(self, collection, request=None):
        await self._pause()
        request = request or SearchRequest()

        matched = [
            record
            for record in self._collection(collection).values()
            if all(_matches(record, condition) for condition in request.conditions)
        ]

        if request.order_by:
            field = request.order_by.lstrip("-")
            descending = request.order_by.startswith("-")

            def sort_key(record):
                value = _resolve(record, field)
                return (value is _MISSING, None if value is _MISSING else value)

            try:
                matched.sort(key=sort_key, reverse=descending)
            except TypeError:
                matched.sort(key=lambda record: str(sort_key(record)), reverse=descending)

        start = request.offset or 0
        end = start + request.limit if request.limit else None
        return SearchResult(items=copy.deepcopy(matched[start:end]), total=len(matched))

    async def raw_query(self, query, params=None):
        await self._pause()
        raise RemoteRejection(501, "Raw queries are not supported by the in-memory store")
