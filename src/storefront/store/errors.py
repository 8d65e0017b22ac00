"""Errors raised by entity store clients."""

from typing import Any


class StoreError(Exception):
    """Base class for entity store failures."""


class TransportError(StoreError):
    """The remote call could not complete (connection refused, timeout, ...)."""


class RemoteRejection(StoreError):
    """The store answered with a non-success status."""

    def __init__(self, status: int, message: str, response: Any = None):
        self.status = status
        self.message = message
        self.response = response
        super().__init__(f"{status}: {message}")


class EntityNotFound(RemoteRejection):
    """Lookup for an entity that does not exist.

    Callers branch on this during get-or-create and user resolution, so it is
    not treated as fatal by itself.
    """

    def __init__(self, collection: str, entity_id: str, response: Any = None):
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(404, f"{collection} {entity_id} not found", response)
