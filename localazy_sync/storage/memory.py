"""
In-memory Directus implementation for development and tests.

Works without a Directus instance. Items are kept as nested dicts,
with translation rows stored inline under their relation field, the way
Directus returns them when the relation is expanded.
"""

from __future__ import annotations

import copy
from typing import Any

from localazy_sync.storage.base import (
    SETTINGS_SYSTEM_COLLECTION,
    TRANSLATIONS_SYSTEM_COLLECTION,
    DirectusApi,
    DirectusBackend,
    DirectusDataModel,
    relations_for_field,
)


class InMemoryDirectus(DirectusApi, DirectusDataModel):
    """
    Dict-backed Directus holding items, fields and relations.

    Every write is appended to ``operations`` as
    ``(action, collection, payload)`` so callers can inspect what was
    written.

    Example:
        directus = InMemoryDirectus()
        directus.add_collection("articles", items=[{"id": 1, "translations": [...]}])
        await directus.fetch_items("articles", {"filter": {"id": {"_in": [1]}}})
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._fields: dict[str, list[dict[str, Any]]] = {}
        self._relations: list[dict[str, Any]] = []
        self._settings: dict[str, Any] | None = None
        self._next_id = 1000
        self.operations: list[tuple[str, str, Any]] = []

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_collection(
        self,
        collection: str,
        items: list[dict[str, Any]] | None = None,
        fields: list[dict[str, Any]] | None = None,
    ) -> None:
        store = self._collections.setdefault(collection, {})
        for item in items or []:
            item = copy.deepcopy(item)
            if item.get("id") is None:
                item["id"] = self._generate_id()
            store[str(item["id"])] = item
        if fields is not None:
            self._fields[collection] = copy.deepcopy(fields)

    def add_relation(self, relation: dict[str, Any]) -> None:
        self._relations.append(copy.deepcopy(relation))

    def set_settings(self, settings: dict[str, Any] | None) -> None:
        self._settings = copy.deepcopy(settings)

    def get_item(self, collection: str, item_id: str | int) -> dict[str, Any] | None:
        item = self._collections.get(collection, {}).get(str(item_id))
        return copy.deepcopy(item) if item is not None else None

    def _generate_id(self) -> int:
        self._next_id += 1
        return self._next_id

    # =========================================================================
    # DirectusApi
    # =========================================================================

    async def fetch_items(self, collection: str, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        query = query or {}
        items = list(self._collections.get(collection, {}).values())

        filters = query.get("filter") or {}
        for field, condition in filters.items():
            items = [item for item in items if _matches(item.get(field), condition)]

        limit = query.get("limit", -1)
        if isinstance(limit, int) and limit >= 0:
            items = items[:limit]

        return copy.deepcopy(items)

    async def create_item(self, collection: str, data: dict[str, Any]) -> str | int:
        item = copy.deepcopy(data)
        if item.get("id") is None:
            item["id"] = self._generate_id()
        self._collections.setdefault(collection, {})[str(item["id"])] = item
        self.operations.append(("create", collection, copy.deepcopy(data)))
        return item["id"]

    async def update_item(self, collection: str, item_id: str | int, data: dict[str, Any]) -> None:
        store = self._collections.setdefault(collection, {})
        item = store.setdefault(str(item_id), {"id": item_id})
        for key, value in data.items():
            if _is_relational_payload(value):
                item[key] = self._apply_relational_payload(item.get(key) or [], value)
            else:
                item[key] = copy.deepcopy(value)
        self.operations.append(("update", collection, {"id": item_id, **copy.deepcopy(data)}))

    async def fetch_settings(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._settings)

    async def save_settings(self, payload: dict[str, Any]) -> None:
        self._settings = {**(self._settings or {}), **copy.deepcopy(payload)}
        self.operations.append(("update", SETTINGS_SYSTEM_COLLECTION, copy.deepcopy(payload)))

    async def fetch_translation_strings(self) -> list[dict[str, Any]]:
        return await self.fetch_items(TRANSLATIONS_SYSTEM_COLLECTION)

    async def upsert_translation_string(self, payload: dict[str, Any]) -> None:
        if payload.get("id") is not None:
            await self.update_item(TRANSLATIONS_SYSTEM_COLLECTION, payload["id"], payload)
        else:
            await self.create_item(TRANSLATIONS_SYSTEM_COLLECTION, payload)

    async def has_collection(self, collection: str) -> bool:
        return collection in self._collections or collection in self._fields

    # =========================================================================
    # DirectusDataModel
    # =========================================================================

    async def get_fields_for_collection(self, collection: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._fields.get(collection, []))

    def get_relations_for_field(self, collection: str, field: str) -> list[dict[str, Any]]:
        return relations_for_field(self._relations, collection, field)

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_relational_payload(self, rows: list[dict[str, Any]], payload: dict[str, Any]) -> list[dict[str, Any]]:
        rows = copy.deepcopy(rows)
        by_id = {str(row.get("id")): row for row in rows}

        for update in payload.get("update", []):
            row = by_id.get(str(update.get("id")))
            if row is not None:
                row.update(copy.deepcopy(update))

        for created in payload.get("create", []):
            row = copy.deepcopy(created)
            row.setdefault("id", self._generate_id())
            rows.append(row)

        deleted = {str(row_id) for row_id in payload.get("delete", [])}
        return [row for row in rows if str(row.get("id")) not in deleted]


def _matches(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return value == condition
    if "_in" in condition:
        return str(value) in {str(v) for v in condition["_in"]}
    if "_eq" in condition:
        return str(value) == str(condition["_eq"])
    return True


def _is_relational_payload(value: Any) -> bool:
    return isinstance(value, dict) and bool({"create", "update", "delete"} & value.keys())


def create_memory_backend(directus: InMemoryDirectus | None = None) -> DirectusBackend:
    """Bundle one InMemoryDirectus as both capabilities."""
    directus = directus or InMemoryDirectus()
    return DirectusBackend(api=directus, data_model=directus)
