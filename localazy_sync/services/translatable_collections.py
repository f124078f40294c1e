"""
Translatable collections - fetch Directus items and flatten their translations.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from localazy_sync.core.models import (
    DEFAULT_LANGUAGE_FK_FIELD,
    EnabledField,
    SyncSettings,
    TranslatableContent,
)
from localazy_sync.services.content import (
    ContentFromCollections,
    TranslatableFieldAttributes,
    merge_contents,
)
from localazy_sync.services.enabled_fields import enabled_collections
from localazy_sync.services.queue import AsyncBatchQueue
from localazy_sync.storage.base import DirectusApi, DirectusDataModel

logger = logging.getLogger(__name__)


class TranslatableCollection(BaseModel):
    """A collection to export, optionally restricted to some items."""

    collection: str
    item_ids: list[str] = Field(default_factory=list)


class CollectionContent(BaseModel):
    """Items of one collection, fetched with their translation rows."""

    collection: str
    translatable_field_attributes: list[TranslatableFieldAttributes]
    items: list[dict[str, Any]]


class TranslatableCollectionsService:
    """
    Reads translatable content out of Directus collections.

    Only collections with enabled fields are read. Collections are
    fetched as paced jobs; a collection that fails to load is logged
    and left out of the result.
    """

    def __init__(
        self,
        directus: DirectusApi,
        data_model: DirectusDataModel,
        delay_between: float = 0.05,
    ):
        self.directus = directus
        self.data_model = data_model
        self.delay_between = delay_between

    async def build_translatable_collections_with_fields(self, collections: list[str]) -> dict[str, list[dict[str, Any]]]:
        """Translation fields per collection, for collections that have any."""
        output: dict[str, list[dict[str, Any]]] = {}
        for collection in collections:
            fields = await self.data_model.get_translation_type_fields(collection)
            if fields:
                output[collection] = fields
        return output

    async def resolve_content_for_collection(
        self,
        collection: str,
        item_ids: list[str],
        translation_type_fields: list[dict[str, Any]],
        settings: SyncSettings,
    ) -> CollectionContent:
        """Fetch items with their translation rows and expanded language FK."""
        attributes = []
        for field in translation_type_fields:
            relations = self.data_model.get_relations_for_field(collection, field["field"])
            language_relation = next(
                (r for r in relations if r.get("related_collection") == settings.language_collection),
                None,
            )
            attributes.append(TranslatableFieldAttributes(
                field=field["field"],
                language_fk_field=(language_relation or {}).get("field") or DEFAULT_LANGUAGE_FK_FIELD,
                language_code_field=settings.language_code_field or "code",
            ))

        fields = ["id"]
        for attr in attributes:
            fields.append(f"{attr.field}.*")
            fields.append(f"{attr.field}.{attr.language_fk_field}.*")

        query: dict[str, Any] = {"fields": fields, "limit": -1}
        if item_ids:
            query["filter"] = {"id": {"_in": item_ids}}

        items = await self.directus.fetch_items(collection, query)
        return CollectionContent(
            collection=collection,
            translatable_field_attributes=attributes,
            items=items,
        )

    async def fetch_content_from_translatable_collections(
        self,
        translatable_collections: list[TranslatableCollection],
        languages: list[str],
        enabled_fields: list[EnabledField],
        settings: SyncSettings,
    ) -> TranslatableContent:
        content = TranslatableContent()
        enabled = set(enabled_collections(enabled_fields))
        targets = [t for t in translatable_collections if t.collection in enabled]
        fields_by_collection = await self.build_translatable_collections_with_fields(
            list(dict.fromkeys(t.collection for t in targets))
        )
        queue = AsyncBatchQueue()

        for target in targets:
            translation_fields = fields_by_collection.get(target.collection)
            if not translation_fields:
                logger.debug(f"Localazy: {target.collection} has no translations field, skipping")
                continue
            queue.add(self._collection_job(target, translation_fields, settings))

        results = await queue.execute(delay_between=self.delay_between)

        for result in results:
            if result.error is not None:
                logger.warning(f"Localazy: Could not read collection content: {result.error}")
                continue
            collection_content: CollectionContent = result.data
            collection_fields = await self.data_model.get_fields_for_collection(collection_content.collection)
            merge_contents(content, ContentFromCollections.create_content_from_collection_items(
                collection=collection_content.collection,
                items=collection_content.items,
                enabled_fields=enabled_fields,
                translatable_field_attributes=collection_content.translatable_field_attributes,
                settings=settings,
                collection_fields=collection_fields,
                languages=languages,
            ))

        return content

    def _collection_job(
        self,
        target: TranslatableCollection,
        translation_fields: list[dict[str, Any]],
        settings: SyncSettings,
    ):
        async def job() -> CollectionContent:
            return await self.resolve_content_for_collection(
                target.collection, target.item_ids, translation_fields, settings,
            )
        return job

    async def fetch_all_collections_content(
        self,
        languages: list[str],
        enabled_fields: list[EnabledField],
        settings: SyncSettings,
    ) -> TranslatableContent:
        """Content of every collection with enabled fields."""
        targets = [TranslatableCollection(collection=c) for c in enabled_collections(enabled_fields)]
        return await self.fetch_content_from_translatable_collections(targets, languages, enabled_fields, settings)
