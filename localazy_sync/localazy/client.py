"""
Localazy API client.

The synchronization only ever talks to Localazy through the
LocalazyClient interface, and only through a RequestThrottler (see
``localazy.throttle``). HttpLocalazyClient is the production
implementation over the public REST API.

API reference: https://localazy.com/docs/api
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from localazy_sync.config import get_settings
from localazy_sync.core.errors import NetworkError, api_error_from_response
from localazy_sync.core.models import (
    KeyValueEntry,
    LocalazyFile,
    LocalazyKey,
    LocalazyProject,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Interface
# =============================================================================


class LocalazyClient(ABC):
    """
    Typed subset of the Localazy API.

    Implementations raise ApiError for non-2xx answers and NetworkError
    when Localazy cannot be reached.
    """

    @abstractmethod
    async def import_json(self, project_id: str, file_name: str, language: str, content: KeyValueEntry) -> dict[str, Any]:
        """Upload nested JSON content in one language into a file."""
        pass

    @abstractmethod
    async def list_files(self, project_id: str) -> list[LocalazyFile]:
        """List files of a project."""
        pass

    @abstractmethod
    async def list_keys(self, project_id: str, file_id: str, language: str) -> list[LocalazyKey]:
        """List every key of a file in one language."""
        pass

    @abstractmethod
    async def list_projects(self, organization: bool = True, languages: bool = True) -> list[LocalazyProject]:
        """List projects the token has access to."""
        pass

    @abstractmethod
    async def update_key(self, project_id: str, key_id: str, deprecated: int = 0) -> None:
        """Update a key; ``deprecated=0`` deprecates it, ``-1`` restores it."""
        pass

    async def close(self) -> None:
        """Release underlying connections."""
        pass


# =============================================================================
# HTTP implementation
# =============================================================================


class HttpLocalazyClient(LocalazyClient):
    """
    Localazy REST client using httpx.

    One client is created per project token. Key listings are
    paginated by Localazy; ``list_keys`` follows the ``next`` cursor
    until the last page.

    Usage:
        async with HttpLocalazyClient(token) as client:
            projects = await client.list_projects()
    """

    KEYS_PAGE_LIMIT = 1000

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.localazy_url,
            timeout=timeout or settings.localazy_timeout,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    async def __aenter__(self) -> HttpLocalazyClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def import_json(self, project_id: str, file_name: str, language: str, content: KeyValueEntry) -> dict[str, Any]:
        payload = {
            "files": [
                {
                    "name": file_name,
                    "content": {"type": "json", language: content},
                }
            ],
        }
        return await self._request("POST", f"/projects/{project_id}/import", json=payload)

    async def list_files(self, project_id: str) -> list[LocalazyFile]:
        data = await self._request("GET", f"/projects/{project_id}/files")
        return [LocalazyFile.model_validate(item) for item in data or []]

    async def list_keys(self, project_id: str, file_id: str, language: str) -> list[LocalazyKey]:
        keys: list[LocalazyKey] = []
        params: dict[str, Any] = {"limit": self.KEYS_PAGE_LIMIT}

        while True:
            data = await self._request(
                "GET",
                f"/projects/{project_id}/files/{file_id}/keys/{language}",
                params=params,
            )
            keys.extend(LocalazyKey.model_validate(item) for item in data.get("keys", []))

            next_cursor = data.get("next")
            if not next_cursor:
                break
            params = {"limit": self.KEYS_PAGE_LIMIT, "next": next_cursor}

        return keys

    async def list_projects(self, organization: bool = True, languages: bool = True) -> list[LocalazyProject]:
        params = {
            "organization": str(organization).lower(),
            "languages": str(languages).lower(),
        }
        data = await self._request("GET", "/projects", params=params)
        return [LocalazyProject.model_validate(item) for item in data or []]

    async def update_key(self, project_id: str, key_id: str, deprecated: int = 0) -> None:
        await self._request("PUT", f"/projects/{project_id}/keys/{key_id}", json={"deprecated": deprecated})

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"Localazy unreachable: {e}") from e

        if response.status_code >= 400:
            logger.debug(f"Localazy {method} {path} failed: {response.status_code}")
            raise api_error_from_response(response, "Localazy")

        if not response.content:
            return {}
        return response.json()
