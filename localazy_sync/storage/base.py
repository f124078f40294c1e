"""
Directus abstraction layer.

The synchronization reads and writes Directus only through these
interfaces, so it runs the same against a live instance over REST
(``storage.rest``) or an in-memory store (``storage.memory``).

Records are plain dicts shaped like the Directus REST payloads:
items, field definitions ({collection, field, type, meta, schema}) and
relations ({collection, field, related_collection, meta}).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from localazy_sync.core.models import (
    CONTENT_TRANSFER_SETUP_COLLECTION,
    LOCALAZY_DATA_COLLECTION,
    SETTINGS_COLLECTION,
    ContentTransferSetup,
    LocalazyData,
    SyncSettings,
)

logger = logging.getLogger(__name__)


# Directus system collections
SETTINGS_SYSTEM_COLLECTION = "directus_settings"
TRANSLATIONS_SYSTEM_COLLECTION = "directus_translations"


# =============================================================================
# Interfaces
# =============================================================================


class DirectusApi(ABC):
    """
    Item-level access to a Directus instance.

    Implementations: RestDirectusApi (Directus REST API),
    InMemoryDirectus (development and tests).
    """

    @abstractmethod
    async def fetch_items(self, collection: str, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """
        Read items matching a Directus query.

        Supported query keys: ``fields``, ``filter`` (``{"id": {"_in": [...]}}``)
        and ``limit`` (-1 for all).
        """
        pass

    @abstractmethod
    async def create_item(self, collection: str, data: dict[str, Any]) -> str | int:
        """Create an item, return its primary key."""
        pass

    @abstractmethod
    async def update_item(self, collection: str, item_id: str | int, data: dict[str, Any]) -> None:
        """Partial update of an item."""
        pass

    @abstractmethod
    async def fetch_settings(self) -> dict[str, Any] | None:
        """Read the ``directus_settings`` singleton (legacy translation strings)."""
        pass

    @abstractmethod
    async def save_settings(self, payload: dict[str, Any]) -> None:
        """Partial update of the ``directus_settings`` singleton."""
        pass

    @abstractmethod
    async def fetch_translation_strings(self) -> list[dict[str, Any]]:
        """Read every ``directus_translations`` row: {id, key, language, value}."""
        pass

    @abstractmethod
    async def upsert_translation_string(self, payload: dict[str, Any]) -> None:
        """Update the row when ``payload`` has an id, create it otherwise."""
        pass

    @abstractmethod
    async def has_collection(self, collection: str) -> bool:
        """Whether a collection exists in the schema."""
        pass

    async def close(self) -> None:
        """Release connections held by the implementation."""
        pass

    # -------------------------------------------------------------------------
    # Persisted configuration
    # -------------------------------------------------------------------------

    async def fetch_first(self, collection: str) -> dict[str, Any] | None:
        items = await self.fetch_items(collection, {"fields": ["*"], "limit": 1})
        return items[0] if items else None

    async def fetch_sync_settings(self) -> SyncSettings | None:
        record = await self.fetch_first(SETTINGS_COLLECTION)
        return SyncSettings.model_validate(record) if record else None

    async def fetch_content_transfer_setup(self) -> ContentTransferSetup | None:
        record = await self.fetch_first(CONTENT_TRANSFER_SETUP_COLLECTION)
        return ContentTransferSetup.model_validate(record) if record else None

    async def fetch_localazy_data(self) -> LocalazyData | None:
        record = await self.fetch_first(LOCALAZY_DATA_COLLECTION)
        return LocalazyData.model_validate(record) if record else None


class DirectusDataModel(ABC):
    """Schema-level access: field definitions and relations."""

    @abstractmethod
    async def get_fields_for_collection(self, collection: str) -> list[dict[str, Any]]:
        """Field definitions of a collection."""
        pass

    @abstractmethod
    def get_relations_for_field(self, collection: str, field: str) -> list[dict[str, Any]]:
        """Relations in which ``collection.field`` takes part."""
        pass

    async def refresh(self) -> None:
        """Reload cached schema information."""
        pass

    async def get_translation_type_fields(self, collection: str) -> list[dict[str, Any]]:
        fields = await self.get_fields_for_collection(collection)
        return [field for field in fields if is_translation_field(field)]


def is_translation_field(field: dict[str, Any]) -> bool:
    """A Directus ``translations`` interface: an alias field marked special."""
    meta = field.get("meta") or {}
    special = meta.get("special") or []
    return field.get("type") == "alias" and "translations" in special


def relations_for_field(relations: list[dict[str, Any]], collection: str, field: str) -> list[dict[str, Any]]:
    """
    Relations of ``collection.field``, including the junction-side
    relation of a many-to-many so the related collection is reachable.
    """
    in_collection = [
        r for r in relations
        if r.get("collection") == collection or r.get("related_collection") == collection
    ]
    matching = [
        r for r in in_collection
        if (r.get("collection") == collection and r.get("field") == field)
        or (r.get("related_collection") == collection and (r.get("meta") or {}).get("one_field") == field)
    ]

    if matching:
        first = matching[0]
        junction_field = (first.get("meta") or {}).get("junction_field")
        if junction_field is not None:
            secondary = next(
                (
                    r for r in relations
                    if r.get("collection") == first.get("collection") and r.get("field") == junction_field
                ),
                None,
            )
            if secondary is not None:
                matching.append(secondary)

    return matching


# =============================================================================
# Backend container
# =============================================================================


class DirectusBackend(BaseModel):
    """
    Both Directus capabilities, bundled.

    Created once at startup and handed to the synchronization; services
    use the interfaces without knowing the implementation behind them.
    """

    model_config = {"arbitrary_types_allowed": True}

    api: DirectusApi
    data_model: DirectusDataModel

    async def refresh(self) -> None:
        await self.data_model.refresh()

    async def close(self) -> None:
        await self.api.close()
