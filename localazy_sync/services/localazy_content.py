"""
Content reconstruction for import.

Regroups the flat key lists fetched from Localazy (one list per
language) into Directus shapes: per collection, per item, per language
for collection content; per key for translation strings.
"""

from __future__ import annotations

import logging

from localazy_sync.core.models import (
    META_IDENTIFIER,
    TRANSLATION_STRINGS_MARKER,
    EnabledField,
    LanguageKeys,
    LocalazyCollectionBlock,
    LocalazyCollectionItem,
    LocalazyContent,
    LocalazyItemsInLanguage,
    LocalazyKey,
    LocalazyTranslationStringBlock,
)
from localazy_sync.services.enabled_fields import fields_for_collection

logger = logging.getLogger(__name__)


class ContentFromLocalazyService:
    """Parses Localazy keys into LocalazyContent."""

    @classmethod
    def parse_localazy_content(
        cls,
        keys_per_language: list[LanguageKeys],
        enabled_fields: list[EnabledField],
    ) -> LocalazyContent:
        """
        Group keys by origin.

        Key paths ``[collection, item_id, relation_field, field]`` become
        collection items, kept only when ``field`` is enabled for the
        collection. Paths ``["translation_strings", string_id, key...]``
        become translation strings. Anything else is skipped.
        """
        content = LocalazyContent()
        enabled_by_collection: dict[str, set[str]] = {}
        skipped = 0

        for language_keys in keys_per_language:
            for key in language_keys.keys:
                path = key.key
                if not path or any(segment.startswith(META_IDENTIFIER) for segment in path):
                    skipped += 1
                    continue

                if path[0] == TRANSLATION_STRINGS_MARKER:
                    if len(path) < 3:
                        skipped += 1
                        continue
                    cls._add_translation_string(content, language_keys.language, key)
                elif len(path) == 4:
                    collection = path[0]
                    if collection not in enabled_by_collection:
                        enabled_by_collection[collection] = fields_for_collection(enabled_fields, collection)
                    if path[3] not in enabled_by_collection[collection]:
                        continue
                    cls._add_collection_item(content, language_keys.language, key)
                else:
                    skipped += 1

        if skipped:
            logger.debug(f"Skipped {skipped} Localazy keys with unrecognized paths")
        return content

    @staticmethod
    def _add_translation_string(content: LocalazyContent, language: str, key: LocalazyKey) -> None:
        directus_id = key.key[1]
        string_key = ".".join(key.key[2:])

        block = content.translation_strings.get(string_key)
        if block is None:
            block = LocalazyTranslationStringBlock(
                key=string_key,
                directus_id=directus_id,
                localazy_key=key,
            )
            content.translation_strings[string_key] = block
        block.translations[language] = key.value

    @staticmethod
    def _add_collection_item(content: LocalazyContent, language: str, key: LocalazyKey) -> None:
        collection, item_id, relation_field, field = key.key

        block = content.collections.setdefault(collection, LocalazyCollectionBlock())
        if relation_field not in block.translation_fields:
            block.translation_fields.append(relation_field)

        per_language = block.items.setdefault(item_id, [])
        bucket = next((b for b in per_language if b.language == language), None)
        if bucket is None:
            bucket = LocalazyItemsInLanguage(language=language)
            per_language.append(bucket)

        bucket.items.append(LocalazyCollectionItem(
            translation_field=relation_field,
            field=field,
            value=key.value,
            localazy_key=key,
        ))
