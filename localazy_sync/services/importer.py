"""
Import from Localazy.

Two halves:
- ImportFromLocalazyService fetches the keys of ``directus.json`` per
  language and regroups them into LocalazyContent.
- DirectusWriteBackService writes that content back into Directus
  translation rows and translation strings.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from localazy_sync.core.errors import ErrorTracker
from localazy_sync.core.models import (
    DEFAULT_LANGUAGE_FK_FIELD,
    LOCALAZY_FILE_NAME,
    DirectusLocalazyLanguage,
    EnabledField,
    LanguageKeys,
    LocalazyCollectionBlock,
    LocalazyContent,
    LocalazyFile,
    LocalazyItemsInLanguage,
    LocalazyProject,
    SyncSettings,
    extract_language_code,
)
from localazy_sync.localazy.throttle import ThrottledLocalazyApi
from localazy_sync.services.localazy_content import ContentFromLocalazyService
from localazy_sync.services.queue import AsyncBatchQueue
from localazy_sync.services.translation_strings import TranslationStringsService
from localazy_sync.storage.base import DirectusApi, DirectusDataModel

logger = logging.getLogger(__name__)


NOTHING_TO_IMPORT = "Nothing to import. Please export content to Localazy first."


class ImportOutcome(BaseModel):
    success: bool
    content: LocalazyContent = Field(default_factory=LocalazyContent)
    message: str = ""
    failed_languages: list[str] = Field(default_factory=list)


# =============================================================================
# Fetching from Localazy
# =============================================================================


class ImportFromLocalazyService:
    """Fetches Localazy keys and parses them into LocalazyContent."""

    def __init__(self, api: ThrottledLocalazyApi, error_tracker: ErrorTracker):
        self.api = api
        self.error_tracker = error_tracker

    async def load_file(self, project_id: str) -> LocalazyFile | None:
        """The ``directus.json`` file of the project, if it was ever exported."""
        if not project_id:
            return None
        try:
            files = await self.api.list_files(project_id)
        except Exception as e:
            self.error_tracker.track_localazy_error(e, "loadFile", {"project": project_id})
            return None
        return next((f for f in files if f.name == LOCALAZY_FILE_NAME), None)

    async def import_content(
        self,
        languages: list[DirectusLocalazyLanguage],
        enabled_fields: list[EnabledField],
        project: LocalazyProject,
    ) -> ImportOutcome:
        """
        Fetch and parse keys for every language.

        Languages sharing a Localazy form are fetched once. A language
        whose keys cannot be fetched is tracked and left out; the rest
        are still imported.
        """
        unique: dict[str, DirectusLocalazyLanguage] = {}
        for language in languages:
            unique.setdefault(language.localazy_form, language)

        directus_file = await self.load_file(project.id)
        if directus_file is None:
            self.error_tracker.track_localazy_error(Exception("Nothing to import"), "fetchLocalazyContent")
            return ImportOutcome(success=False, message=NOTHING_TO_IMPORT)

        targets = list(unique.values())
        queue = AsyncBatchQueue()
        for language in targets:
            queue.add(self._fetch_job(project.id, directus_file.id, language))
        # Every call is paced by the throttler, so fetches may overlap
        results = await queue.execute(concurrency=max(len(targets), 1))

        keys_per_language: list[LanguageKeys] = []
        failed: list[str] = []
        for language, result in zip(targets, results):
            if result.error is not None:
                failed.append(language.directus_form)
                self.error_tracker.track_localazy_error(
                    result.error, "fetchLocalazyContent",
                    {"language": language.directus_form, "message": f"Couldn't fetch content for {language.directus_form}"},
                )
                continue
            keys_per_language.append(result.data)

        content = ContentFromLocalazyService.parse_localazy_content(keys_per_language, enabled_fields)
        return ImportOutcome(success=True, content=content, failed_languages=failed)

    def _fetch_job(self, project_id: str, file_id: str, language: DirectusLocalazyLanguage):
        async def job() -> LanguageKeys:
            keys = await self.api.list_keys(project_id, file_id, language.localazy_form)
            return LanguageKeys(language=language.directus_form, keys=keys)
        return job


# =============================================================================
# Writing back to Directus
# =============================================================================


class WriteBackResult(BaseModel):
    updated_items: int = 0
    skipped_items: int = 0
    failed_items: int = 0
    translation_strings: int = 0
    failed_collections: list[str] = Field(default_factory=list)


class TranslationPayload:
    """
    Relational payload for the translation relations of one item.

    Accumulates ``update`` entries per existing translation row and
    ``create`` entries per missing language, merging values that target
    the same row.
    """

    def __init__(self):
        self._updates: dict[str, dict[str, dict[str, Any]]] = {}
        self._creates: dict[str, dict[str, dict[str, Any]]] = {}

    def add_update(self, relation_field: str, row_id: Any, values: dict[str, Any]) -> None:
        entry = self._updates.setdefault(relation_field, {}).setdefault(str(row_id), {"id": row_id})
        entry.update(values)

    def add_create(self, relation_field: str, language: str, values: dict[str, Any]) -> None:
        entry = self._creates.setdefault(relation_field, {}).setdefault(language, {})
        entry.update(values)

    @property
    def has_creates(self) -> bool:
        return any(self._creates.values())

    def changes_existing_rows(self, item: dict[str, Any]) -> bool:
        """Whether some update sets a value the existing row does not hold."""
        for relation_field, updates in self._updates.items():
            rows = {str(row.get("id")): row for row in item.get(relation_field) or [] if isinstance(row, dict)}
            for row_id, update in updates.items():
                row = rows.get(row_id, {})
                if any(row.get(field) != value for field, value in update.items() if field != "id"):
                    return True
        return False

    def to_directus(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for relation_field in {*self._updates, *self._creates}:
            payload[relation_field] = {
                "create": list(self._creates.get(relation_field, {}).values()),
                "update": list(self._updates.get(relation_field, {}).values()),
                "delete": [],
            }
        return payload


class DirectusWriteBackService:
    """
    Writes imported LocalazyContent into Directus.

    One queue job per collection plus one for translation strings. Items
    that no longer exist are skipped; a failing item is tracked and the
    rest of the collection continues.
    """

    def __init__(
        self,
        directus: DirectusApi,
        data_model: DirectusDataModel,
        error_tracker: ErrorTracker,
        delay_between: float = 0.15,
    ):
        self.directus = directus
        self.data_model = data_model
        self.error_tracker = error_tracker
        self.delay_between = delay_between
        self.translation_strings = TranslationStringsService(directus)

    async def upsert_from_localazy_content(self, content: LocalazyContent, settings: SyncSettings) -> WriteBackResult:
        result = WriteBackResult()
        queue = AsyncBatchQueue()
        collections = list(content.collections.items())

        for collection, block in collections:
            queue.add(self._collection_job(collection, block, settings, result))

        async def translation_strings_job() -> int:
            return await self.translation_strings.upsert_translation_strings(
                list(content.translation_strings.values())
            )
        queue.add(translation_strings_job)

        job_results = await queue.execute(delay_between=self.delay_between)

        for (collection, _), job_result in zip(collections, job_results):
            if job_result.error is not None:
                result.failed_collections.append(collection)
                self.error_tracker.track_directus_error(
                    job_result.error, "upsertFromLocalazyContent", {"collection": collection},
                )

        strings_result = job_results[-1]
        if strings_result.error is not None:
            self.error_tracker.track_directus_error(strings_result.error, "upsertTranslationStrings")
        else:
            result.translation_strings = strings_result.data or 0

        return result

    def _collection_job(self, collection: str, block: LocalazyCollectionBlock, settings: SyncSettings, result: WriteBackResult):
        async def job() -> None:
            await self.upsert_items_from_single_collection(collection, block, settings, result)
        return job

    def language_fk_field(self, collection: str, translation_field: str, settings: SyncSettings) -> str:
        relations = self.data_model.get_relations_for_field(collection, translation_field)
        relation = next(
            (r for r in relations if r.get("related_collection") == settings.language_collection),
            None,
        )
        return (relation or {}).get("field") or DEFAULT_LANGUAGE_FK_FIELD

    async def upsert_items_from_single_collection(
        self,
        collection: str,
        block: LocalazyCollectionBlock,
        settings: SyncSettings,
        result: WriteBackResult | None = None,
    ) -> WriteBackResult:
        result = result if result is not None else WriteBackResult()

        fk_fields: dict[str, str] = {}
        fields = ["id"]
        for translation_field in block.translation_fields:
            fk_field = self.language_fk_field(collection, translation_field, settings)
            fk_fields[translation_field] = fk_field
            fields.append(f"{translation_field}.*")
            fields.append(f"{translation_field}.{fk_field}.*")

        items = await self.directus.fetch_items(collection, {"fields": fields, "limit": -1})
        items_by_id = {str(item.get("id")): item for item in items}

        for index, (item_id, translations) in enumerate(block.items.items(), start=1):
            logger.debug(f"Localazy: Updating {collection} collection ({index}/{len(block.items)})")
            item = items_by_id.get(str(item_id))
            if item is None:
                result.skipped_items += 1
                continue
            try:
                if await self.upsert_item_from_localazy_content(
                    collection, item, translations, fk_fields, settings.language_code_field or "code",
                ):
                    result.updated_items += 1
            except Exception as e:
                result.failed_items += 1
                self.error_tracker.track_directus_error(
                    e, "upsertItemFromLocalazyContent", {"collection": collection, "item": item_id},
                )

        return result

    async def upsert_item_from_localazy_content(
        self,
        collection: str,
        item: dict[str, Any],
        translations: list[LocalazyItemsInLanguage],
        fk_fields: dict[str, str],
        language_code_field: str,
    ) -> bool:
        """Write one item's translations; returns whether anything was written."""
        payload = TranslationPayload()

        for bucket in translations:
            for entry in bucket.items:
                fk_field = fk_fields.get(entry.translation_field, DEFAULT_LANGUAGE_FK_FIELD)
                row = next(
                    (
                        r for r in item.get(entry.translation_field) or []
                        if isinstance(r, dict)
                        and extract_language_code(r.get(fk_field), language_code_field) == bucket.language
                    ),
                    None,
                )
                if row is not None:
                    payload.add_update(entry.translation_field, row.get("id"), {entry.field: entry.value})
                else:
                    payload.add_create(entry.translation_field, bucket.language, {
                        fk_field: bucket.language,
                        entry.field: entry.value,
                    })

        if not payload.has_creates and not payload.changes_existing_rows(item):
            return False

        await self.directus.update_item(collection, item["id"], payload.to_directus())
        return True
