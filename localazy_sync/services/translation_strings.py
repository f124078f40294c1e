"""
Directus translation strings - read for export, write back on import.

Directus keeps free-standing translation strings either in the
dedicated ``directus_translations`` collection (one row per key and
language) or, on older versions, as a JSON list in the
``translation_strings`` field of ``directus_settings``.
"""

from __future__ import annotations

import logging
from typing import Any

from localazy_sync.core.models import (
    LocalazyTranslationStringBlock,
    SyncSettings,
    TranslatableContent,
    TranslationString,
)
from localazy_sync.services.content import ContentFromTranslationStrings
from localazy_sync.storage.base import TRANSLATIONS_SYSTEM_COLLECTION, DirectusApi

logger = logging.getLogger(__name__)


def normalize_translation_rows(rows: list[dict[str, Any]]) -> list[TranslationString]:
    """Group ``{id, key, language, value}`` rows into one TranslationString per key."""
    by_key: dict[str, TranslationString] = {}
    for row in rows:
        key = row.get("key")
        if not key:
            continue
        string = by_key.get(key)
        if string is None:
            string = TranslationString(id=row.get("id"), key=key)
            by_key[key] = string
        string.translations[row.get("language")] = row.get("value")
    return list(by_key.values())


class TranslationStringsService:
    """Reads and writes Directus translation strings in either storage form."""

    def __init__(self, directus: DirectusApi):
        self.directus = directus

    async def has_dedicated_translations_collection(self) -> bool:
        return await self.directus.has_collection(TRANSLATIONS_SYSTEM_COLLECTION)

    async def _fetch_from_settings(self) -> list[TranslationString]:
        settings = await self.directus.fetch_settings() or {}
        legacy = settings.get("translation_strings")
        if not isinstance(legacy, list):
            return []
        return [TranslationString.model_validate(entry) for entry in legacy if isinstance(entry, dict)]

    async def resolve_translation_strings(self) -> list[TranslationString]:
        """
        Current translation strings.

        Reads the dedicated collection when it exists and falls back to
        the legacy settings field if that read fails.
        """
        if not await self.has_dedicated_translations_collection():
            return await self._fetch_from_settings()

        try:
            rows = await self.directus.fetch_translation_strings()
        except Exception as e:
            logger.warning(f"Localazy: Reading directus_translations failed, trying settings: {e}")
            try:
                return await self._fetch_from_settings()
            except Exception as e:
                logger.warning(f"Localazy: Reading legacy translation strings failed: {e}")
                return []
        return normalize_translation_rows(rows)

    async def fetch_translation_strings(
        self,
        languages: list[str],
        settings: SyncSettings,
        synchronize_translation_strings: bool = True,
    ) -> TranslatableContent:
        """Flattened translation strings, or empty content when their sync is off."""
        if not synchronize_translation_strings:
            return TranslatableContent()

        strings = await self.resolve_translation_strings()
        return ContentFromTranslationStrings.create_content_from_translation_strings(
            translation_strings=strings,
            settings=settings,
            enabled_languages=languages,
        )

    # =========================================================================
    # Write-back
    # =========================================================================

    async def upsert_translation_strings(self, blocks: list[LocalazyTranslationStringBlock]) -> int:
        """Write imported translation strings; returns the number of writes."""
        if not blocks:
            return 0
        if await self.has_dedicated_translations_collection():
            return await self.upsert_new_translation_strings(blocks)
        return await self.upsert_legacy_translation_strings(blocks)

    async def upsert_new_translation_strings(self, blocks: list[LocalazyTranslationStringBlock]) -> int:
        """
        Diff against ``directus_translations`` rows by key and language.

        Changed rows are updated, unknown (key, language) pairs created,
        unchanged ones left alone. Writes happen one at a time.
        """
        rows = await self.directus.fetch_translation_strings()
        existing = {(row.get("key"), row.get("language")): row for row in rows}

        updates: list[dict[str, Any]] = []
        creations: list[dict[str, Any]] = []
        for block in blocks:
            for language, value in block.translations.items():
                row = existing.get((block.key, language))
                if row is None:
                    creations.append({"key": block.key, "language": language, "value": value})
                elif row.get("value") != value:
                    updates.append({"id": row.get("id"), "value": value})

        for payload in updates:
            await self.directus.upsert_translation_string(payload)
        for payload in creations:
            await self.directus.upsert_translation_string(payload)

        return len(updates) + len(creations)

    async def upsert_legacy_translation_strings(self, blocks: list[LocalazyTranslationStringBlock]) -> int:
        """Merge imported translations into the ``translation_strings`` settings list."""
        settings = await self.directus.fetch_settings()
        if settings is None:
            return 0

        merged: dict[str, dict[str, Any]] = {}
        for string in await self._fetch_from_settings():
            entry = merged.setdefault(string.key, {"key": string.key, "translations": {}})
            entry["translations"].update(string.translations)
        for block in blocks:
            entry = merged.setdefault(block.key, {"key": block.key, "translations": {}})
            entry["translations"].update(block.translations)

        if not merged:
            return 0

        await self.directus.save_settings({"translation_strings": list(merged.values())})
        return 1
