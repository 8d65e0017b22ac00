"""Entity store boundary, the generic persistence service the core consumes.

Entities live in named collections and are addressed by identifier. The core
only depends on this interface; ``InMemoryEntityStore`` and
``HttpEntityStore`` are the two implementations shipped here.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Operator(Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    IN = "in"


class SearchCondition(BaseModel):
    field: str
    operator: Operator
    value: Any


class SearchRequest(BaseModel):
    conditions: list[SearchCondition] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)
    order_by: str | None = None  # "field" ascending, "-field" descending


class SearchResult(BaseModel):
    items: list[dict[str, Any]]
    total: int


class WriteResult(BaseModel):
    id: str
    version: str | int


def where(field: str, operator: Operator | str, value: Any) -> SearchCondition:
    return SearchCondition(field=field, operator=Operator(operator), value=value)


class EntityStoreClient(ABC):
    """Create/get/update/delete/search over named entity collections.

    Returned entities carry their identifier under the ``"id"`` key.
    ``get``, ``update`` and ``delete`` raise ``EntityNotFound`` for unknown
    identifiers; every method raises ``TransportError`` or ``RemoteRejection``
    when the call fails.
    """

    @abstractmethod
    async def create(
        self, collection: str, entity: dict[str, Any], *, entity_id: str | None = None
    ) -> WriteResult:
        """Persist a new entity. ``entity_id`` requests a caller-chosen identifier."""

    @abstractmethod
    async def get(self, collection: str, entity_id: str) -> dict[str, Any]:
        pass

    @abstractmethod
    async def update(self, collection: str, entity_id: str, partial: dict[str, Any]) -> WriteResult:
        """Merge ``partial`` into the stored entity."""

    @abstractmethod
    async def delete(self, collection: str, entity_id: str) -> None:
        pass

    @abstractmethod
    async def search(self, collection: str, request: SearchRequest | None = None) -> SearchResult:
        pass

    @abstractmethod
    async def raw_query(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        pass
