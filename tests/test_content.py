"""
Tests for content flattening, chunking and reconstruction.
"""

import pytest

from localazy_sync.core.errors import ErrorCategory, ErrorTracker
from localazy_sync.core.models import (
    EnabledField,
    LanguageKeys,
    LocalazyKey,
    SyncSettings,
    TranslatableContent,
    TranslationString,
)
from localazy_sync.services.content import (
    ContentFromCollections,
    ContentFromTranslationStrings,
    TranslatableFieldAttributes,
    merge_contents,
    should_emit,
    split_content_into_chunks,
)
from localazy_sync.services.enabled_fields import (
    enabled_collections,
    fields_for_collection,
    parse_from_database,
    prepare_for_database,
)
from localazy_sync.services.localazy_content import ContentFromLocalazyService


TRANSLATION_FIELDS = [
    {"collection": "articles_translations", "field": "title", "type": "string", "schema": {"max_length": 255}},
    {"collection": "articles_translations", "field": "body", "type": "text", "schema": {"comment": "Main text"}},
]

ENABLED = [EnabledField(collection="articles", fields=["title", "body"])]

ARTICLES = [
    {
        "id": 1,
        "translations": [
            {"id": 11, "articles_id": 1, "languages_code": "en", "title": "Hello", "body": ""},
            {"id": 12, "articles_id": 1, "languages_code": "de", "title": "Hallo", "body": "Welt"},
        ],
    },
    {
        "id": 2,
        "translations": [
            {"id": 21, "articles_id": 2, "languages_code": {"code": "en"}, "title": "Second", "body": "Text"},
        ],
    },
]


def key(key_id: str, path: str, value) -> LocalazyKey:
    return LocalazyKey(id=key_id, key=path.split("/"), value=value)


def flatten(skip_empty_strings: bool = True, languages=("en", "de")) -> TranslatableContent:
    return ContentFromCollections.create_content_from_collection_items(
        "articles",
        ARTICLES,
        ENABLED,
        [TranslatableFieldAttributes(field="translations")],
        SyncSettings(source_language="en", skip_empty_strings=skip_empty_strings),
        TRANSLATION_FIELDS,
        list(languages),
    )


def title_meta(item_id: int) -> dict:
    return {
        "add": {
            "directus": {
                "collection": "articles",
                "relation_field": "translations",
                "field": "title",
                "itemId": item_id,
            },
        },
        "limit": 255,
    }


# =============================================================================
# Collection Flattening Tests
# =============================================================================


class TestContentFromCollections:
    def test_source_branch_carries_metadata(self):
        content = flatten()

        first = content.source_language["articles"]["1"]["translations"]
        assert first == {"title": "Hello", "@title": title_meta(1)}

        second = content.source_language["articles"]["2"]["translations"]
        assert second["title"] == "Second"
        assert second["body"] == "Text"
        assert second["@body"]["comment"] == "Main text"
        assert "limit" not in second["@body"]

    def test_other_languages_have_no_metadata(self):
        content = flatten()

        assert content.other_languages == {
            "de": {"articles": {"1": {"translations": {"title": "Hallo", "body": "Welt"}}}},
        }

    def test_empty_strings_emitted_when_not_skipped(self):
        content = flatten(skip_empty_strings=False)

        first = content.source_language["articles"]["1"]["translations"]
        assert first["body"] == ""
        assert "@body" in first

    def test_unrequested_languages_ignored(self):
        content = flatten(languages=("en",))

        assert content.other_languages == {}
        assert set(content.source_language["articles"]) == {"1", "2"}

    def test_disabled_fields_ignored(self):
        content = ContentFromCollections.create_content_from_collection_items(
            "articles",
            ARTICLES,
            [EnabledField(collection="articles", fields=["body"])],
            [TranslatableFieldAttributes(field="translations")],
            SyncSettings(source_language="en"),
            TRANSLATION_FIELDS,
            ["en", "de"],
        )

        assert "1" not in content.source_language["articles"]
        assert content.other_languages["de"]["articles"]["1"]["translations"] == {"body": "Welt"}

    def test_unknown_language_reference_skipped(self):
        items = [{"id": 3, "translations": [{"languages_code": 42, "title": "Lost"}]}]
        content = ContentFromCollections.create_content_from_collection_items(
            "articles", items, ENABLED, [TranslatableFieldAttributes(field="translations")],
            SyncSettings(source_language="en"), [], ["en"],
        )

        assert content.is_empty


@pytest.mark.parametrize("value,skip,expected", [
    ("text", True, True),
    ("", True, False),
    (None, True, False),
    (0, True, False),
    ("", False, True),
    (None, False, True),
])
def test_should_emit(value, skip, expected):
    assert should_emit(value, skip) is expected


# =============================================================================
# Translation String Flattening Tests
# =============================================================================


class TestContentFromTranslationStrings:
    def test_flatten(self):
        strings = [
            TranslationString(id="t1", key="welcome", translations={"en": "Welcome", "de": "Willkommen", "fr": ""}),
        ]

        content = ContentFromTranslationStrings.create_content_from_translation_strings(
            strings, SyncSettings(source_language="en"), ["en", "de", "fr"],
        )

        assert content.source_language == {
            "translation_strings": {
                "t1": {
                    "welcome": "Welcome",
                    "@welcome": {"add": {"directus": {"translation_string_id": "t1"}}},
                },
            },
        }
        assert content.other_languages == {
            "de": {"translation_strings": {"t1": {"welcome": "Willkommen"}}},
        }

    def test_only_enabled_languages(self):
        strings = [TranslationString(id="t1", key="welcome", translations={"en": "Welcome", "de": "Willkommen"})]

        content = ContentFromTranslationStrings.create_content_from_translation_strings(
            strings, SyncSettings(source_language="en"), ["en"],
        )

        assert content.other_languages == {}


# =============================================================================
# Merge Tests
# =============================================================================


class TestMergeContents:
    def test_merge_is_associative_over_disjoint_items(self):
        a = TranslatableContent(source_language={"articles": {"1": {"translations": {"title": "A"}}}})
        b = TranslatableContent(
            source_language={"articles": {"2": {"translations": {"title": "B"}}}},
            other_languages={"de": {"articles": {"2": {"translations": {"title": "B-de"}}}}},
        )
        c = TranslatableContent(other_languages={"de": {"pages": {"9": {"translations": {"title": "C-de"}}}}})

        left = merge_contents(merge_contents(a.model_copy(deep=True), b.model_copy(deep=True)), c.model_copy(deep=True))
        right = merge_contents(a.model_copy(deep=True), merge_contents(b.model_copy(deep=True), c.model_copy(deep=True)))

        assert left == right
        assert set(left.source_language["articles"]) == {"1", "2"}
        assert set(left.other_languages["de"]) == {"articles", "pages"}

    def test_merge_concatenates_arrays(self):
        target = TranslatableContent(source_language={"tags": ["a"]})
        merge_contents(target, TranslatableContent(source_language={"tags": ["b"]}))

        assert target.source_language == {"tags": ["a", "b"]}


# =============================================================================
# Chunking Tests
# =============================================================================


class TestChunking:
    def test_metadata_stays_with_its_value(self):
        content = flatten().source_language

        chunks = split_content_into_chunks(content, chunk_size=2)

        assert len(chunks) == 2
        assert chunks[0]["articles"]["1"]["translations"] == {"title": "Hello", "@title": title_meta(1)}
        assert chunks[0]["articles"]["2"]["translations"] == {"title": "Second", "@title": title_meta(2)}
        second = chunks[1]["articles"]["2"]["translations"]
        assert set(second) == {"body", "@body"}

    def test_small_content_is_one_chunk(self):
        content = flatten().source_language

        assert split_content_into_chunks(content) == [content]

    def test_empty_content_has_no_chunks(self):
        assert split_content_into_chunks({}) == []

    def test_orphaned_metadata_kept(self):
        chunks = split_content_into_chunks({"a": {"@x": {"comment": "c"}, "y": "v"}}, chunk_size=1)

        merged = {}
        for chunk in chunks:
            merged.setdefault("a", {}).update(chunk.get("a", {}))
        assert merged == {"a": {"@x": {"comment": "c"}, "y": "v"}}


# =============================================================================
# Enabled Fields Tests
# =============================================================================


class TestEnabledFields:
    def test_round_trip(self):
        fields = [
            EnabledField(collection="articles", fields=["title", "body"]),
            EnabledField(collection="pages", fields=[]),
        ]

        assert parse_from_database(prepare_for_database(fields)) == fields

    def test_non_list_serializes_to_empty_array(self):
        assert prepare_for_database("nope") == "[]"
        assert prepare_for_database(None) == "[]"

    def test_parse_accepts_decoded_list(self):
        parsed = parse_from_database([{"collection": "articles", "fields": ["title"]}])
        assert parsed == [EnabledField(collection="articles", fields=["title"])]

    def test_parse_garbage(self):
        assert parse_from_database("") == []
        assert parse_from_database("{not json") == []
        assert parse_from_database('{"collection": "articles"}') == []
        assert parse_from_database([{"fields": ["title"]}]) == []

    def test_garbage_tracked_as_validation_error(self):
        tracker = ErrorTracker()

        assert parse_from_database("{not json", tracker) == []
        assert parse_from_database('{"collection": "articles"}', tracker) == []
        assert parse_from_database([{"fields": ["title"]}], tracker) == []
        assert parse_from_database("", tracker) == []

        records = tracker.get_errors_by_category(ErrorCategory.VALIDATION)
        assert [r.message for r in records] == [
            "Enabled fields are not valid JSON",
            "Enabled fields must be an array",
            "Enabled fields are malformed",
        ]
        assert {r.type for r in records} == {"parseEnabledFields"}

    def test_lookups(self):
        fields = [
            EnabledField(collection="articles", fields=["title"]),
            EnabledField(collection="pages", fields=["heading"]),
            EnabledField(collection="articles", fields=["body"]),
        ]

        assert fields_for_collection(fields, "articles") == {"title", "body"}
        assert enabled_collections(fields) == ["articles", "pages"]


# =============================================================================
# Reconstruction Tests
# =============================================================================


class TestContentFromLocalazy:
    def test_collection_items(self):
        keys = [
            LanguageKeys(language="de", keys=[
                key("k1", "articles/1/translations/title", "Hallo"),
                key("k2", "articles/1/translations/body", "Welt"),
            ]),
            LanguageKeys(language="fr", keys=[key("k3", "articles/1/translations/title", "Bonjour")]),
        ]

        content = ContentFromLocalazyService.parse_localazy_content(keys, ENABLED)

        block = content.collections["articles"]
        assert block.translation_fields == ["translations"]
        languages = block.items["1"]
        assert [bucket.language for bucket in languages] == ["de", "fr"]
        assert [(i.field, i.value) for i in languages[0].items] == [("title", "Hallo"), ("body", "Welt")]
        assert languages[1].items[0].localazy_key.id == "k3"

    def test_metadata_and_unknown_paths_skipped(self):
        keys = [LanguageKeys(language="de", keys=[
            key("k1", "articles/1/translations/@title", "meta"),
            key("k2", "articles/1/title", "short"),
            key("k3", "articles/1/translations/title/extra", "long"),
            key("k4", "translation_strings/t1", "no key"),
        ])]

        content = ContentFromLocalazyService.parse_localazy_content(keys, ENABLED)

        assert content.collections == {}
        assert content.translation_strings == {}

    def test_disabled_field_dropped(self):
        keys = [LanguageKeys(language="de", keys=[
            key("k1", "articles/1/translations/slug", "hallo"),
            key("k2", "pages/1/translations/title", "Seite"),
        ])]

        content = ContentFromLocalazyService.parse_localazy_content(keys, ENABLED)

        assert content.collections == {}

    def test_translation_strings(self):
        keys = [
            LanguageKeys(language="en", keys=[key("k1", "translation_strings/t1/welcome", "Welcome")]),
            LanguageKeys(language="de", keys=[
                key("k2", "translation_strings/t1/welcome", "Willkommen"),
                key("k3", "translation_strings/t9/nav/home", "Start"),
            ]),
        ]

        content = ContentFromLocalazyService.parse_localazy_content(keys, [])

        welcome = content.translation_strings["welcome"]
        assert welcome.directus_id == "t1"
        assert welcome.translations == {"en": "Welcome", "de": "Willkommen"}
        assert welcome.localazy_key.id == "k1"

        nested = content.translation_strings["nav.home"]
        assert nested.directus_id == "t9"
        assert nested.translations == {"de": "Start"}
