"""
Directus REST implementation.

Talks to a Directus instance over its REST API with a static access
token. Connection-level failures are retried with exponential backoff;
HTTP errors are raised as ApiError without retrying.

Docs: https://docs.directus.io/reference/introduction.html
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from localazy_sync.config import Settings, get_settings
from localazy_sync.core.errors import ApiError, NetworkError, api_error_from_response
from localazy_sync.storage.base import (
    DirectusApi,
    DirectusBackend,
    DirectusDataModel,
    relations_for_field,
)

logger = logging.getLogger(__name__)


class DirectusRestClient:
    """Thin httpx wrapper unwrapping Directus ``{"data": ...}`` envelopes."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.max_retries = max_retries or settings.directus_max_retries
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.directus_url,
            timeout=timeout or settings.directus_timeout,
            headers={"Authorization": f"Bearer {token or settings.directus_token}"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(NetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._send(method, path, **kwargs)

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"Directus unreachable: {e}") from e

        if response.status_code >= 400:
            raise api_error_from_response(response, "Directus")

        if response.status_code == 204 or not response.content:
            return None
        return response.json().get("data")


def _query_params(query: dict[str, Any] | None) -> dict[str, Any]:
    """Encode a Directus query object as REST query parameters."""
    params: dict[str, Any] = {}
    for key, value in (query or {}).items():
        if key == "fields" and isinstance(value, list):
            params["fields"] = ",".join(value)
        elif isinstance(value, (dict, list)):
            params[key] = json.dumps(value)
        else:
            params[key] = value
    return params


class RestDirectusApi(DirectusApi):
    """DirectusApi over ``/items``, ``/settings``, ``/translations``."""

    def __init__(self, client: DirectusRestClient):
        self.client = client

    async def close(self) -> None:
        await self.client.close()

    async def fetch_items(self, collection: str, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        data = await self.client.request("GET", f"/items/{collection}", params=_query_params(query))
        if isinstance(data, dict):
            # singleton collections
            return [data]
        return data or []

    async def create_item(self, collection: str, data: dict[str, Any]) -> str | int:
        created = await self.client.request("POST", f"/items/{collection}", json=data)
        return (created or {}).get("id")

    async def update_item(self, collection: str, item_id: str | int, data: dict[str, Any]) -> None:
        await self.client.request("PATCH", f"/items/{collection}/{item_id}", json=data)

    async def fetch_settings(self) -> dict[str, Any] | None:
        return await self.client.request("GET", "/settings", params={"fields": "translation_strings"})

    async def save_settings(self, payload: dict[str, Any]) -> None:
        await self.client.request("PATCH", "/settings", json=payload)

    async def fetch_translation_strings(self) -> list[dict[str, Any]]:
        return await self.client.request("GET", "/translations", params={"limit": -1}) or []

    async def upsert_translation_string(self, payload: dict[str, Any]) -> None:
        if payload.get("id") is not None:
            body = {k: v for k, v in payload.items() if k != "id"}
            await self.client.request("PATCH", f"/translations/{payload['id']}", json=body)
        else:
            await self.client.request("POST", "/translations", json=payload)

    async def has_collection(self, collection: str) -> bool:
        try:
            data = await self.client.request("GET", f"/collections/{collection}")
        except ApiError as e:
            # 403 as well as 404: Directus hides collections the token cannot read
            logger.debug(f"Collection {collection} not available: {e}")
            return False
        return data is not None


class RestDirectusDataModel(DirectusDataModel):
    """DirectusDataModel over ``/fields`` and ``/relations``."""

    def __init__(self, client: DirectusRestClient):
        self.client = client
        self._relations: list[dict[str, Any]] = []

    async def refresh(self) -> None:
        """Fetch every relation; ``get_relations_for_field`` reads the cache."""
        self._relations = await self.client.request("GET", "/relations") or []

    async def get_fields_for_collection(self, collection: str) -> list[dict[str, Any]]:
        return await self.client.request("GET", f"/fields/{collection}") or []

    def get_relations_for_field(self, collection: str, field: str) -> list[dict[str, Any]]:
        return relations_for_field(self._relations, collection, field)


async def create_rest_backend(settings: Settings | None = None) -> DirectusBackend:
    """Build a REST backend and prime its relation cache."""
    settings = settings or get_settings()
    client = DirectusRestClient(
        base_url=settings.directus_url,
        token=settings.directus_token,
        timeout=settings.directus_timeout,
        max_retries=settings.directus_max_retries,
    )
    data_model = RestDirectusDataModel(client)
    try:
        await data_model.refresh()
    except Exception:
        await client.close()
        raise
    return DirectusBackend(api=RestDirectusApi(client), data_model=data_model)
