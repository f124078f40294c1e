"""
Content flattening for export.

Turns Directus items with translation relations, and free-standing
translation strings, into the nested key/value trees Localazy imports:

    {collection: {item_id: {relation_field: {field: value, "@field": meta}}}}
    {"translation_strings": {string_id: {key: value, "@key": meta}}}

Metadata siblings (``@``-prefixed) appear on the source language branch
only. They let a key found on Localazy be traced back to the Directus
record it came from.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from pydantic import BaseModel

from localazy_sync.core.models import (
    DEFAULT_LANGUAGE_FK_FIELD,
    META_IDENTIFIER,
    TRANSLATION_STRINGS_MARKER,
    EnabledField,
    KeyValueEntry,
    SyncSettings,
    TranslatableContent,
    TranslationString,
    extract_language_code,
)
from localazy_sync.core.utils import merge_with_arrays
from localazy_sync.services.enabled_fields import fields_for_collection

logger = logging.getLogger(__name__)


DEFAULT_CHUNK_SIZE = 1000


class TranslatableFieldAttributes(BaseModel):
    """How to read one translations relation of a collection."""

    field: str
    language_fk_field: str = DEFAULT_LANGUAGE_FK_FIELD
    language_code_field: str = "code"


def should_emit(value: Any, skip_empty_strings: bool) -> bool:
    """
    Whether a field value becomes a leaf.

    Truthy values always do. Falsy values (``""``, ``0``, ``None``) are
    emitted as ``""`` only when empty strings are not skipped.
    """
    return bool(value) or not skip_empty_strings


def meta_key(name: str) -> str:
    return f"{META_IDENTIFIER}{name}"


def is_meta_key(name: str) -> bool:
    return name.startswith(META_IDENTIFIER)


def merge_contents(target: TranslatableContent, source: TranslatableContent) -> TranslatableContent:
    """Merge ``source`` into ``target`` in place, concatenating arrays."""
    merge_with_arrays(target.source_language, source.source_language)
    for language, entry in source.other_languages.items():
        merge_with_arrays(target.other_languages.setdefault(language, {}), entry)
    return target


# =============================================================================
# Collections
# =============================================================================


class ContentFromCollections:
    """Flattens collection items into TranslatableContent."""

    @classmethod
    def create_content_from_collection_items(
        cls,
        collection: str,
        items: list[dict[str, Any]],
        enabled_fields: list[EnabledField],
        translatable_field_attributes: list[TranslatableFieldAttributes],
        settings: SyncSettings,
        collection_fields: list[dict[str, Any]],
        languages: list[str],
    ) -> TranslatableContent:
        content = TranslatableContent()
        enabled = fields_for_collection(enabled_fields, collection)
        requested_languages = set(languages)
        schema_by_field = {f.get("field"): f.get("schema") or {} for f in collection_fields}

        for item in items:
            for attributes in translatable_field_attributes:
                translations = item.get(attributes.field)
                if not isinstance(translations, list):
                    continue

                for row in translations:
                    if not isinstance(row, dict):
                        continue
                    language = extract_language_code(
                        row.get(attributes.language_fk_field), attributes.language_code_field,
                    )
                    if not language or language not in requested_languages:
                        continue

                    is_source = language == settings.source_language
                    branch = (
                        content.source_language
                        if is_source
                        else content.other_languages.setdefault(language, {})
                    )

                    for field_name, value in row.items():
                        if field_name not in enabled:
                            continue
                        if not should_emit(value, settings.skip_empty_strings):
                            continue

                        payload: KeyValueEntry = {field_name: value or ""}
                        if is_source:
                            payload[meta_key(field_name)] = cls._build_meta(
                                collection, attributes.field, field_name, item.get("id"),
                                schema_by_field.get(field_name, {}),
                            )
                        merge_with_arrays(branch, {
                            collection: {str(item.get("id")): {attributes.field: payload}},
                        })

        return content

    @staticmethod
    def _build_meta(
        collection: str,
        relation_field: str,
        field_name: str,
        item_id: Any,
        schema: dict[str, Any],
    ) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "add": {
                "directus": {
                    "collection": collection,
                    "relation_field": relation_field,
                    "field": field_name,
                    "itemId": item_id,
                },
            },
        }
        max_length = schema.get("max_length")
        if isinstance(max_length, int) and not isinstance(max_length, bool):
            meta["limit"] = max_length
        if schema.get("comment"):
            meta["comment"] = schema["comment"]
        return meta


# =============================================================================
# Translation strings
# =============================================================================


class ContentFromTranslationStrings:
    """Flattens Directus translation strings into TranslatableContent."""

    @classmethod
    def create_content_from_translation_strings(
        cls,
        translation_strings: list[TranslationString],
        settings: SyncSettings,
        enabled_languages: list[str],
    ) -> TranslatableContent:
        content = TranslatableContent()

        for string in translation_strings:
            string_id = str(string.id if string.id is not None else string.key)

            for language in enabled_languages:
                if language not in string.translations:
                    continue
                value = string.translations[language]
                if not should_emit(value, settings.skip_empty_strings):
                    continue

                is_source = language == settings.source_language
                payload: KeyValueEntry = {string.key: value or ""}
                if is_source:
                    payload[meta_key(string.key)] = {
                        "add": {"directus": {"translation_string_id": string.id}},
                    }

                branch = (
                    content.source_language
                    if is_source
                    else content.other_languages.setdefault(language, {})
                )
                merge_with_arrays(branch, {TRANSLATION_STRINGS_MARKER: {string_id: payload}})

        return content


# =============================================================================
# Chunking
# =============================================================================


def _leaf_units(entry: KeyValueEntry, path: tuple[str, ...] = ()) -> Iterator[list[tuple[tuple[str, ...], Any]]]:
    """
    Yield the leaves of a tree as units that must stay together: a
    value leaf plus its metadata sibling, if any.
    """
    for key, value in entry.items():
        if is_meta_key(key):
            # Orphaned metadata travels alone
            if key[len(META_IDENTIFIER):] not in entry:
                yield [(path + (key,), value)]
            continue
        if isinstance(value, dict):
            yield from _leaf_units(value, path + (key,))
            continue

        unit = [(path + (key,), value)]
        sibling = meta_key(key)
        if sibling in entry:
            unit.append((path + (sibling,), entry[sibling]))
        yield unit


def _set_path(target: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    for segment in path[:-1]:
        target = target.setdefault(segment, {})
    target[path[-1]] = value


def split_content_into_chunks(content: KeyValueEntry, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[KeyValueEntry]:
    """
    Split a tree into trees of at most ``chunk_size`` value leaves.

    Leaf order is preserved and a value never lands in a different
    chunk than its metadata. Empty content yields no chunks.
    """
    chunk_size = max(chunk_size, 1)
    chunks: list[KeyValueEntry] = []
    current: KeyValueEntry = {}
    count = 0

    for unit in _leaf_units(content):
        values_in_unit = sum(1 for path, _ in unit if not is_meta_key(path[-1]))
        if count and count + values_in_unit > chunk_size:
            chunks.append(current)
            current, count = {}, 0
        for path, value in unit:
            _set_path(current, path, value)
        count += values_in_unit

    if current:
        chunks.append(current)
    return chunks
