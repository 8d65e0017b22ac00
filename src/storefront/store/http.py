"""REST transport for a remote entity service.

Calls go through a ``requests.Session`` on a worker thread so the event loop
is never blocked. Only idempotent reads are retried; a write that may or may
not have landed is reported to the caller instead.
"""

import asyncio
from typing import Any

import requests
import structlog
from pydantic import ValidationError as PydanticValidationError
from requests import RequestException
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.store.client import EntityStoreClient, SearchRequest, SearchResult, WriteResult
from storefront.store.errors import EntityNotFound, RemoteRejection, TransportError

logger = structlog.get_logger(__name__)


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(RequestException),
    )


def _search_result(body: Any) -> SearchResult:
    # Some deployments answer with a bare list instead of {items, total}
    if isinstance(body, list):
        return SearchResult(items=body, total=len(body))
    return SearchResult.model_validate(body)


class HttpEntityStore(EntityStoreClient):
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        model_version: str | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.model_version = model_version
        self.session = session or requests.Session()

    def _entity_path(self, collection: str, entity_id: str | None = None) -> str:
        path = f"/entity/{collection}"
        if self.model_version:
            path += f"/{self.model_version}"
        if entity_id is not None:
            path += f"/{entity_id}"
        return path

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug("Entity store request", method=method, url=url)
        return self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)

    @http_retry()
    def _send_idempotent(self, method: str, path: str, **kwargs) -> requests.Response:
        return self._send(method, path, **kwargs)

    @staticmethod
    def _body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def _call(
        self, method: str, path: str, *, idempotent: bool = False, not_found=None, parse=None, **kwargs
    ) -> Any:
        sender = self._send_idempotent if idempotent else self._send
        try:
            response = sender(method, path, **kwargs)
        except RequestException as exc:
            logger.warning("Entity store unreachable", method=method, path=path, error=str(exc))
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        body = self._body(response)
        if response.status_code == 404 and not_found is not None:
            raise EntityNotFound(*not_found, response=body)
        if not response.ok:
            message = body.get("message") if isinstance(body, dict) else None
            raise RemoteRejection(
                response.status_code,
                message or f"HTTP {response.status_code}: {response.reason}",
                body,
            )
        if parse is None:
            return body

        try:
            return parse(body)
        except PydanticValidationError as exc:
            logger.warning("Malformed entity store response", method=method, path=path, status=response.status_code)
            raise RemoteRejection(response.status_code, "Malformed response", body) from exc

    async def create(self, collection, entity, *, entity_id=None):
        payload = {**entity, "id": entity_id} if entity_id else entity
        return await asyncio.to_thread(
            self._call, "POST", self._entity_path(collection), parse=WriteResult.model_validate, json=payload
        )

    async def get(self, collection, entity_id):
        return await asyncio.to_thread(
            self._call,
            "GET",
            self._entity_path(collection, entity_id),
            idempotent=True,
            not_found=(collection, entity_id),
        )

    async def update(self, collection, entity_id, partial):
        return await asyncio.to_thread(
            self._call,
            "PUT",
            self._entity_path(collection, entity_id),
            not_found=(collection, entity_id),
            parse=WriteResult.model_validate,
            json=partial,
        )

    async def delete(self, collection, entity_id):
        await asyncio.to_thread(
            self._call,
            "DELETE",
            self._entity_path(collection, entity_id),
            not_found=(collection, entity_id),
        )

    async def search(self, collection, request=None):
        request = request or SearchRequest()

        params = {}
        if request.limit:
            params["limit"] = request.limit
        if request.offset:
            params["offset"] = request.offset
        if request.order_by:
            params["orderBy"] = request.order_by

        if request.conditions:
            conditions = [condition.model_dump(mode="json") for condition in request.conditions]
            return await asyncio.to_thread(
                self._call,
                "POST",
                self._entity_path(collection),
                idempotent=True,
                parse=_search_result,
                params=params,
                json={"conditions": conditions},
            )
        return await asyncio.to_thread(
            self._call, "GET", self._entity_path(collection), idempotent=True, parse=_search_result, params=params
        )

    async def raw_query(self, query, params=None):
        body = await asyncio.to_thread(
            self._call,
            "POST",
            "/sql/query",
            json={"query": query, "parameters": params or {}},
        )
        return body or []
