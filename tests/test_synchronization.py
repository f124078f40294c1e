"""
End-to-end tests for the synchronization flows.

Runs against the seeded in-memory Directus and the fake Localazy client
from conftest, with the throttler and queues on the fake clock.
"""

import pytest

from localazy_sync.core.errors import ApiError, ErrorCategory
from localazy_sync.core.models import (
    CONTENT_TRANSFER_SETUP_COLLECTION,
    LOCALAZY_DATA_COLLECTION,
    SETTINGS_COLLECTION,
    CreateMissingLanguages,
    LocalazyKey,
    LocalazyProject,
    LocalazyProjectLanguage,
    LocalazyTranslationStringBlock,
    SyncSettings,
)
from localazy_sync.i18n.adapter import LanguageAdapter
from localazy_sync.services.importer import NOTHING_TO_IMPORT
from localazy_sync.services.languages import SynchronizationLanguagesService
from localazy_sync.services.synchronization import (
    MISSING_CONFIGURATION,
    PROJECT_NOT_LOADED,
    SynchronizationService,
)
from localazy_sync.services.translation_strings import TranslationStringsService
from localazy_sync.storage.base import TRANSLATIONS_SYSTEM_COLLECTION
from localazy_sync.storage.memory import InMemoryDirectus, create_memory_backend


def key(key_id: str, path: str, value) -> LocalazyKey:
    return LocalazyKey(id=key_id, key=path.split("/"), value=value)


def uploaded_languages(localazy) -> list[str]:
    return [language for _, _, language, _ in localazy.imports]


def row_for(item: dict, language: str) -> dict | None:
    for row in item["translations"]:
        code = row["languages_code"]
        if isinstance(code, dict):
            code = code.get("code")
        if code == language:
            return row
    return None


# =============================================================================
# Language Resolution Tests
# =============================================================================


class TestImportLanguages:
    @pytest.fixture
    def project(self):
        return LocalazyProject(
            id="p1",
            source_language=1033,
            languages=[
                LocalazyProjectLanguage(id=1033, code="en"),
                LocalazyProjectLanguage(id=1031, code="de"),
                LocalazyProjectLanguage(id=3082, code="es"),
                LocalazyProjectLanguage(id=1046, code="pt_BR", enabled=False),
            ],
        )

    @pytest.fixture
    def service(self, directus, tracker):
        return SynchronizationLanguagesService(directus, LanguageAdapter.from_mappings("[]"), tracker)

    def settings(self, **overrides) -> SyncSettings:
        values = {
            "language_collection": "languages",
            "language_code_field": "code",
            "source_language": "en",
            "create_missing_languages_in_directus": CreateMissingLanguages.NO,
        }
        values.update(overrides)
        return SyncSettings(**values)

    def created_codes(self, directus) -> list[str]:
        return [payload["code"] for action, collection, payload in directus.operations
                if action == "create" and collection == "languages"]

    @pytest.mark.asyncio
    async def test_directus_languages_then_localazy_only_ones(self, service, project):
        languages = await service.resolve_import_languages(self.settings(), project)

        assert [l.directus_form for l in languages] == ["de", "fr", "es", "pt-BR"]
        pt = languages[-1]
        assert pt.original_form == "pt_BR"
        assert pt.localazy_form == "pt_BR"

    @pytest.mark.asyncio
    async def test_source_language_kept_when_importing_it(self, service, project):
        languages = await service.resolve_import_languages(self.settings(import_source_language=True), project)

        assert languages[0].directus_form == "en"
        assert languages[0].localazy_form == "en"

    @pytest.mark.asyncio
    async def test_create_all_missing_languages(self, service, project, directus):
        await service.resolve_import_languages(
            self.settings(create_missing_languages_in_directus=CreateMissingLanguages.ALL), project,
        )

        assert self.created_codes(directus) == ["es", "pt_BR"]

    @pytest.mark.asyncio
    async def test_create_only_non_hidden_languages(self, service, project, directus):
        await service.resolve_import_languages(
            self.settings(create_missing_languages_in_directus=CreateMissingLanguages.ONLY_NON_HIDDEN), project,
        )

        assert self.created_codes(directus) == ["es"]

    @pytest.mark.asyncio
    async def test_no_creation_by_default(self, service, project, directus):
        await service.resolve_import_languages(self.settings(), project)

        assert self.created_codes(directus) == []

    @pytest.mark.asyncio
    async def test_export_languages(self, service):
        assert await service.resolve_export_languages(self.settings(upload_existing_translations=True)) == ["en", "de", "fr"]
        assert await service.resolve_export_languages(self.settings()) == ["en"]


# =============================================================================
# Configuration Tests
# =============================================================================


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_missing_configuration(self, tracker, settings, localazy, clock):
        service = SynchronizationService(
            create_memory_backend(), tracker, settings, client_factory=lambda token: localazy,
        )

        result = await service.run_export()

        assert not result.success
        assert result.message == MISSING_CONFIGURATION
        assert tracker.get_error_counts()[ErrorCategory.CONFIGURATION] == 1
        assert localazy.imports == []

    @pytest.mark.asyncio
    async def test_project_not_loaded_without_token(self, sync_service, directus, localazy):
        await directus.update_item(LOCALAZY_DATA_COLLECTION, 1, {"access_token": ""})

        result = await sync_service.run_import()

        assert not result.success
        assert result.message == PROJECT_NOT_LOADED
        assert localazy.closed

    @pytest.mark.asyncio
    async def test_environment_token_overrides_stored_one(self, backend, tracker, settings, localazy, clock):
        tokens = []
        settings.localazy_token = "from-env"

        def factory(token):
            tokens.append(token)
            return localazy

        service = SynchronizationService(backend, tracker, settings, client_factory=factory)
        context = await service.open_context()
        await context.close()

        assert tokens == ["from-env"]
        assert context.project.id == "p1"

    def test_injected_tracker_is_used(self, backend, tracker, settings):
        service = SynchronizationService(backend, tracker, settings)

        assert len(tracker) == 0
        assert service.error_tracker is tracker

    @pytest.mark.asyncio
    async def test_malformed_enabled_fields_tracked(self, sync_service, directus, tracker):
        await directus.update_item(CONTENT_TRANSFER_SETUP_COLLECTION, 1, {"enabled_fields": "{not json"})

        context = await sync_service.open_context()
        await context.close()

        assert context.enabled_fields == []
        assert [e.type for e in tracker.get_errors_by_category(ErrorCategory.VALIDATION)] == ["parseEnabledFields"]

    @pytest.mark.asyncio
    async def test_non_array_mappings_tracked(self, sync_service, directus, tracker):
        await directus.update_item(SETTINGS_COLLECTION, 1, {"language_mappings": '{"directusCode": "a"}'})

        context = await sync_service.open_context()
        await context.close()

        assert context.adapter.mapping_service.get_all_mappings() == []
        assert [e.type for e in tracker.get_errors_by_category(ErrorCategory.VALIDATION)] == ["loadLanguageMappings"]

    @pytest.mark.asyncio
    async def test_relations_reloaded_per_invocation(self, sync_service, directus, monkeypatch):
        refreshes = []

        async def refresh():
            refreshes.append(True)

        monkeypatch.setattr(directus, "refresh", refresh)

        await sync_service.run_export()
        await sync_service.run_export()

        assert len(refreshes) == 2

    @pytest.mark.asyncio
    async def test_failed_relation_reload_keeps_going(self, sync_service, directus, tracker, monkeypatch):
        async def refresh():
            raise ApiError("Forbidden", status_code=403)

        monkeypatch.setattr(directus, "refresh", refresh)

        result = await sync_service.run_export()

        assert result.success
        assert tracker.get_errors()[0].type == "loadRelations"


# =============================================================================
# Export Tests
# =============================================================================


class TestExport:
    @pytest.mark.asyncio
    async def test_run_export(self, sync_service, localazy):
        result = await sync_service.run_export()

        assert result.success
        assert result.message == "Localazy: Exported 2 chunks"
        assert uploaded_languages(localazy) == ["en", "de"]
        assert {file_name for _, file_name, _, _ in localazy.imports} == {"directus.json"}

        source = localazy.imports[0][3]
        assert source["articles"]["1"]["translations"]["title"] == "Hello"
        assert "body" not in source["articles"]["1"]["translations"]
        assert source["translation_strings"]["t1"]["welcome"] == "Welcome"
        assert "@welcome" in source["translation_strings"]["t1"]

        german = localazy.imports[1][3]
        assert german["articles"]["1"]["translations"] == {"title": "Hallo", "body": "Welt"}
        assert german["translation_strings"]["t1"] == {"welcome": "Willkommen"}
        assert localazy.closed

    @pytest.mark.asyncio
    async def test_run_export_source_only(self, sync_service, directus, localazy):
        await directus.update_item(SETTINGS_COLLECTION, 1, {"upload_existing_translations": 0})

        result = await sync_service.run_export()

        assert result.success
        assert uploaded_languages(localazy) == ["en"]

    @pytest.mark.asyncio
    async def test_failed_chunk_reported(self, sync_service, localazy, tracker):
        localazy.fail_imports_for = {"de"}

        result = await sync_service.run_export()

        assert not result.success
        assert result.details["exported_chunks"] == 1
        assert result.details["failed_chunks"] == 1
        assert tracker.get_error_counts()[ErrorCategory.API] == 1

    @pytest.mark.asyncio
    async def test_export_collection_items(self, sync_service, localazy):
        result = await sync_service.export_collection_content("articles", ["2"])

        assert result.success
        assert uploaded_languages(localazy) == ["en"]
        assert set(localazy.imports[0][3]["articles"]) == {"2"}
        assert "translation_strings" not in localazy.imports[0][3]

    @pytest.mark.asyncio
    async def test_export_unknown_item_is_nothing_to_export(self, sync_service, localazy):
        result = await sync_service.export_collection_content("articles", ["99"])

        assert result.success
        assert result.details["nothing_to_export"]
        assert localazy.imports == []

    @pytest.mark.asyncio
    async def test_export_disabled_collection(self, sync_service, localazy):
        result = await sync_service.export_collection_content("pages", ["1"])

        assert result.success
        assert localazy.imports == []

    @pytest.mark.asyncio
    async def test_export_translation_strings(self, sync_service, localazy):
        result = await sync_service.export_translation_strings()

        assert result.success
        assert uploaded_languages(localazy) == ["en", "de"]
        assert set(localazy.imports[0][3]) == {"translation_strings"}

    @pytest.mark.asyncio
    async def test_automated_upload_disabled(self, sync_service, directus, localazy):
        await directus.update_item(SETTINGS_COLLECTION, 1, {"automated_upload": 0})

        collection_result = await sync_service.export_collection_content("articles", ["1"])
        strings_result = await sync_service.export_translation_strings()

        assert collection_result.success
        assert collection_result.message == "Localazy: Automated upload is disabled"
        assert strings_result.message == "Localazy: Automated upload is disabled"
        assert localazy.imports == []


# =============================================================================
# Import Tests
# =============================================================================


class TestImport:
    @pytest.fixture
    def german_keys(self, localazy):
        localazy.keys["de"] = [
            key("k2", "articles/1/translations/title", "Hallo neu"),
            key("k3", "articles/2/translations/title", "Zweite"),
            key("k4", "articles/99/translations/title", "Verloren"),
            key("k5", "translation_strings/t1/welcome", "Willkommen!"),
        ]
        return localazy.keys["de"]

    @pytest.mark.asyncio
    async def test_run_import_writes_back(self, sync_service, directus, german_keys):
        result = await sync_service.run_import()

        assert result.success, result.message
        assert result.details["updated_items"] == 2
        assert result.details["skipped_items"] == 1
        assert result.details["translation_strings"] == 1

        first = directus.get_item("articles", 1)
        assert row_for(first, "de")["title"] == "Hallo neu"
        assert row_for(first, "de")["body"] == "Welt"
        assert row_for(first, "en")["title"] == "Hello"

        second = directus.get_item("articles", 2)
        assert row_for(second, "de")["title"] == "Zweite"

        assert directus.get_item(TRANSLATIONS_SYSTEM_COLLECTION, "t2")["value"] == "Willkommen!"

    @pytest.mark.asyncio
    async def test_unchanged_values_not_written(self, sync_service, directus, localazy):
        localazy.keys["de"] = [
            key("k2", "articles/1/translations/title", "Hallo"),
            key("k5", "translation_strings/t1/welcome", "Willkommen"),
        ]

        result = await sync_service.run_import()

        assert result.success
        assert result.details["updated_items"] == 0
        assert result.details["translation_strings"] == 0
        assert directus.operations == []

    @pytest.mark.asyncio
    async def test_new_translation_string_language_created(self, sync_service, directus, localazy):
        localazy.keys["fr"] = [key("k8", "translation_strings/t1/welcome", "Bienvenue")]

        result = await sync_service.run_import()

        assert result.details["translation_strings"] == 1
        rows = await directus.fetch_translation_strings()
        assert {"key": "welcome", "language": "fr", "value": "Bienvenue"}.items() <= rows[-1].items()

    @pytest.mark.asyncio
    async def test_nothing_to_import(self, sync_service, localazy):
        localazy.files = []

        result = await sync_service.run_import()

        assert not result.success
        assert result.message == NOTHING_TO_IMPORT

    @pytest.mark.asyncio
    async def test_failed_language_does_not_block_others(self, sync_service, directus, localazy, tracker, german_keys):
        localazy.fail_languages = {"fr"}

        result = await sync_service.run_import()

        assert not result.success
        assert result.message.endswith("with errors")
        assert result.details["failed_languages"] == ["fr"]
        assert result.details["updated_items"] == 2
        assert tracker.get_errors()[0].type == "fetchLocalazyContent"


# =============================================================================
# Deprecation Tests
# =============================================================================


class TestDeprecation:
    @pytest.fixture(autouse=True)
    def source_keys(self, localazy):
        localazy.keys["en"] = [
            key("k1", "articles/1/translations/title", "Hello"),
            key("k6", "articles/2/translations/title", "Second"),
            key("k7", "translation_strings/t1/welcome", "Welcome"),
        ]

    @pytest.mark.asyncio
    async def test_deprecate_collection_items(self, sync_service, localazy):
        count = await sync_service.deprecate_deleted_collection_items("articles", ["1"])

        assert count == 1
        assert localazy.updates == [("p1", "k1", 0)]

    @pytest.mark.asyncio
    async def test_deprecate_translation_strings(self, sync_service, localazy):
        count = await sync_service.deprecate_deleted_translation_strings(["t1"])

        assert count == 1
        assert localazy.updates == [("p1", "k7", 0)]

    @pytest.mark.asyncio
    async def test_failed_key_is_tracked_not_raised(self, sync_service, localazy, tracker):
        localazy.fail_update_keys = {"k1"}

        count = await sync_service.deprecate_deleted_collection_items("articles", ["1", "2"])

        assert count == 1
        assert localazy.updates == [("p1", "k6", 0)]
        assert tracker.get_errors()[-1].details["key"] == "k1"

    @pytest.mark.asyncio
    async def test_deprecation_disabled(self, sync_service, directus, localazy):
        await directus.update_item(SETTINGS_COLLECTION, 1, {"automated_deprecation": 0})

        assert await sync_service.deprecate_deleted_collection_items("articles", ["1"]) == 0
        assert localazy.updates == []

    @pytest.mark.asyncio
    async def test_unreadable_keys_deprecate_nothing(self, sync_service, localazy):
        localazy.fail_languages = {"en"}

        assert await sync_service.deprecate_deleted_translation_strings(["t1"]) == 0
        assert localazy.updates == []


# =============================================================================
# Legacy Translation Strings Tests
# =============================================================================


class TestLegacyTranslationStrings:
    @pytest.fixture
    def legacy(self):
        directus = InMemoryDirectus()
        directus.set_settings({
            "project_name": "Blog",
            "translation_strings": [{"key": "welcome", "translations": {"en": "Welcome"}}],
        })
        return directus

    @pytest.mark.asyncio
    async def test_read_from_settings(self, legacy):
        strings = await TranslationStringsService(legacy).resolve_translation_strings()

        assert [(s.key, s.translations) for s in strings] == [("welcome", {"en": "Welcome"})]

    @pytest.mark.asyncio
    async def test_write_back_merges_into_settings(self, legacy):
        blocks = [
            LocalazyTranslationStringBlock(
                key="welcome", directus_id="", translations={"de": "Willkommen"}, localazy_key=key("k1", "translation_strings/x/welcome", "Welcome"),
            ),
            LocalazyTranslationStringBlock(
                key="bye", directus_id="", translations={"de": "Tschüss"}, localazy_key=key("k2", "translation_strings/y/bye", "Bye"),
            ),
        ]

        writes = await TranslationStringsService(legacy).upsert_translation_strings(blocks)

        settings = await legacy.fetch_settings()
        assert writes == 1
        assert settings["project_name"] == "Blog"
        assert settings["translation_strings"] == [
            {"key": "welcome", "translations": {"en": "Welcome", "de": "Willkommen"}},
            {"key": "bye", "translations": {"de": "Tschüss"}},
        ]

    @pytest.mark.asyncio
    async def test_no_settings_row(self):
        blocks = [LocalazyTranslationStringBlock(
            key="welcome", directus_id="", translations={"de": "Hallo"}, localazy_key=key("k1", "translation_strings/x/welcome", "x"),
        )]

        assert await TranslationStringsService(InMemoryDirectus()).upsert_translation_strings(blocks) == 0
