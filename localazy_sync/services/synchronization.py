"""
Synchronization orchestrator.

Entry points for every synchronization between Directus and Localazy:
full export and import runs, hook-driven export of changed items and
translation strings, and deprecation of keys whose Directus origin was
deleted. Each entry point reads its configuration from Directus, loads
the Localazy project, and returns a SyncResult (or a count, for
deprecation) instead of raising.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import BaseModel, ConfigDict

from localazy_sync.config import Settings, get_settings
from localazy_sync.core.errors import ConfigurationError, ErrorTracker
from localazy_sync.core.models import (
    Configuration,
    DirectusLocalazyLanguage,
    EnabledField,
    LocalazyContent,
    LocalazyProject,
    SyncResult,
    TranslatableContent,
)
from localazy_sync.i18n.adapter import LanguageAdapter
from localazy_sync.i18n.languages import find_by_id
from localazy_sync.localazy.client import HttpLocalazyClient, LocalazyClient
from localazy_sync.localazy.throttle import RequestThrottler, ThrottledLocalazyApi
from localazy_sync.services.content import merge_contents
from localazy_sync.services.enabled_fields import parse_from_database
from localazy_sync.services.export import ExportResult, ExportToLocalazyService
from localazy_sync.services.importer import (
    NOTHING_TO_IMPORT,
    DirectusWriteBackService,
    ImportFromLocalazyService,
)
from localazy_sync.services.languages import SynchronizationLanguagesService
from localazy_sync.services.queue import AsyncBatchQueue
from localazy_sync.services.translatable_collections import (
    TranslatableCollection,
    TranslatableCollectionsService,
)
from localazy_sync.services.translation_strings import TranslationStringsService
from localazy_sync.storage.base import DirectusBackend

logger = logging.getLogger(__name__)


MISSING_CONFIGURATION = "Localazy: Missing settings or content transfer setup"
PROJECT_NOT_LOADED = "Localazy: Could not load project"


class SyncContext(BaseModel):
    """
    Everything one invocation works with.

    Built per invocation: the persisted configuration may change between
    two hooks, and the Localazy client is bound to the stored token.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    configuration: Configuration
    enabled_fields: list[EnabledField]
    adapter: LanguageAdapter
    api: ThrottledLocalazyApi
    project: LocalazyProject | None = None

    async def close(self) -> None:
        await self.api.client.close()


class SynchronizationService:
    """
    Runs synchronizations against one Directus backend.

    The RequestThrottler is shared by every invocation of the service so
    the Localazy caps hold across concurrent hooks.

    Example:
        service = SynchronizationService(backend, ErrorTracker())
        result = await service.run_export()
        print(result.message)
    """

    def __init__(
        self,
        backend: DirectusBackend,
        error_tracker: ErrorTracker | None = None,
        settings: Settings | None = None,
        throttler: RequestThrottler | None = None,
        client_factory: Callable[[str], LocalazyClient] | None = None,
    ):
        self.backend = backend
        self.settings = settings or get_settings()
        self.error_tracker = error_tracker if error_tracker is not None else ErrorTracker()
        self.throttler = throttler or RequestThrottler.from_settings(self.settings)
        self.client_factory = client_factory or self._http_client

    def _http_client(self, token: str) -> LocalazyClient:
        return HttpLocalazyClient(
            token,
            base_url=self.settings.localazy_url,
            timeout=self.settings.localazy_timeout,
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    async def resolve_configuration(self) -> Configuration:
        """
        Read the persisted configuration.

        Raises:
            ConfigurationError: A record is missing or cannot be read
        """
        api = self.backend.api
        try:
            settings = await api.fetch_sync_settings()
            content_transfer_setup = await api.fetch_content_transfer_setup()
            localazy_data = await api.fetch_localazy_data()
        except Exception as e:
            self.error_tracker.track_directus_error(e, "resolveLocalazySettings")
            raise ConfigurationError(MISSING_CONFIGURATION) from e

        if settings is None or content_transfer_setup is None or localazy_data is None:
            self.error_tracker.track_configuration_error(MISSING_CONFIGURATION, "resolveLocalazySettings")
            raise ConfigurationError(MISSING_CONFIGURATION)

        return Configuration(
            settings=settings,
            content_transfer_setup=content_transfer_setup,
            localazy_data=localazy_data,
        )

    async def load_project(self, api: ThrottledLocalazyApi, token: str) -> LocalazyProject | None:
        """First project visible to the token, or None."""
        if not token:
            return None
        try:
            projects = await api.list_projects(organization=True, languages=True)
        except Exception as e:
            self.error_tracker.track_localazy_error(e, "loadProject")
            return None
        return projects[0] if projects else None

    async def refresh_schema(self) -> None:
        """Reload Directus relations; a failed reload keeps the previous ones."""
        try:
            await self.backend.refresh()
        except Exception as e:
            self.error_tracker.track_directus_error(e, "loadRelations")

    async def open_context(self) -> SyncContext:
        """
        Configuration, adapter and throttled API for one invocation,
        with the project loaded.

        Raises:
            ConfigurationError: Configuration missing or project not loaded
        """
        configuration = await self.resolve_configuration()
        await self.refresh_schema()
        token = self.settings.localazy_token or configuration.localazy_data.access_token

        context = SyncContext(
            configuration=configuration,
            enabled_fields=parse_from_database(configuration.content_transfer_setup.enabled_fields, self.error_tracker),
            adapter=LanguageAdapter.from_mappings(configuration.settings.language_mappings, self.error_tracker),
            api=ThrottledLocalazyApi(self.client_factory(token), self.throttler),
        )

        context.project = await self.load_project(context.api, token)
        if context.project is None:
            await context.close()
            raise ConfigurationError(PROJECT_NOT_LOADED)
        return context

    # =========================================================================
    # Service wiring
    # =========================================================================

    def _languages(self, context: SyncContext) -> SynchronizationLanguagesService:
        return SynchronizationLanguagesService(self.backend.api, context.adapter, self.error_tracker)

    def _collections(self) -> TranslatableCollectionsService:
        return TranslatableCollectionsService(
            self.backend.api, self.backend.data_model, self.settings.collections_delay_between,
        )

    def _exporter(self, context: SyncContext) -> ExportToLocalazyService:
        return ExportToLocalazyService(
            context.api,
            context.adapter,
            self.error_tracker,
            delay_between=self.settings.export_delay_between,
            chunk_size=self.settings.export_chunk_size,
        )

    def _importer(self, context: SyncContext) -> ImportFromLocalazyService:
        return ImportFromLocalazyService(context.api, self.error_tracker)

    # =========================================================================
    # Export
    # =========================================================================

    async def run_export(self) -> SyncResult:
        """Export every enabled collection and the translation strings."""
        try:
            context = await self.open_context()
        except ConfigurationError as e:
            logger.error(str(e))
            return SyncResult(success=False, message=str(e))

        try:
            settings = context.configuration.settings
            languages = await self._languages(context).resolve_export_languages(settings)

            async def collections_job() -> TranslatableContent:
                return await self._collections().fetch_all_collections_content(
                    languages, context.enabled_fields, settings,
                )

            async def strings_job() -> TranslatableContent:
                return await self._fetch_translation_strings(context, languages)

            queue = AsyncBatchQueue()
            queue.add([collections_job, strings_job])
            content = TranslatableContent()
            for result in await queue.execute(concurrency=2):
                if result.error is not None:
                    self.error_tracker.track_directus_error(result.error, "fetchExportContent")
                    continue
                merge_contents(content, result.data)

            export = await self._exporter(context).export_content(content, settings, context.project)
            return self._export_result(export)
        except Exception as e:
            self.error_tracker.track_localazy_error(e, "export")
            return SyncResult(success=False, message=f"Localazy: Export failed: {e}")
        finally:
            await context.close()

    async def export_collection_content(self, collection: str, keys: list[str]) -> SyncResult:
        """Export changed items of one collection, if automated upload is on."""
        joined_keys = ", ".join(str(k) for k in keys)
        try:
            context = await self.open_context()
        except ConfigurationError as e:
            logger.error(str(e))
            return SyncResult(success=False, message=str(e))

        try:
            settings = context.configuration.settings
            if not settings.automated_upload:
                return SyncResult(success=True, message="Localazy: Automated upload is disabled")

            languages = await self._languages(context).resolve_export_languages(settings)
            content = await self._collections().fetch_content_from_translatable_collections(
                [TranslatableCollection(collection=collection, item_ids=[str(k) for k in keys])],
                languages,
                context.enabled_fields,
                settings,
            )
            if not content.source_language:
                message = f"Localazy: Nothing to export for {collection} and keys {joined_keys}"
                logger.info(message)
                return SyncResult(success=True, message=message, details={"nothing_to_export": True})

            logger.info(f"Localazy: Exporting {collection} content for keys {joined_keys}")
            export = await self._exporter(context).export_content(content, settings, context.project)
            return self._export_result(export)
        except Exception as e:
            logger.error(f"Localazy: Exporting {collection} content for keys {joined_keys} failed: {e}")
            self.error_tracker.track_directus_error(e, "exportCollectionContent")
            return SyncResult(success=False, message=f"Localazy: Exporting {collection} content failed")
        finally:
            await context.close()

    async def export_translation_strings(self) -> SyncResult:
        """Export the translation strings, if automated upload is on."""
        try:
            context = await self.open_context()
        except ConfigurationError as e:
            logger.error(str(e))
            return SyncResult(success=False, message=str(e))

        try:
            settings = context.configuration.settings
            if not settings.automated_upload:
                return SyncResult(success=True, message="Localazy: Automated upload is disabled")

            languages = await self._languages(context).resolve_export_languages(settings)
            content = await self._fetch_translation_strings(context, languages)
            if not content.source_language:
                logger.info("Localazy: Nothing to export")
                return SyncResult(success=True, message="Localazy: Nothing to export", details={"nothing_to_export": True})

            logger.info("Localazy: Exporting translation strings")
            export = await self._exporter(context).export_content(content, settings, context.project)
            return self._export_result(export)
        except Exception as e:
            logger.error(f"Localazy: Exporting translation strings failed: {e}")
            self.error_tracker.track_directus_error(e, "exportTranslationStrings")
            return SyncResult(success=False, message="Localazy: Exporting translation strings failed")
        finally:
            await context.close()

    async def _fetch_translation_strings(self, context: SyncContext, languages: list[str]) -> TranslatableContent:
        try:
            return await TranslationStringsService(self.backend.api).fetch_translation_strings(
                languages,
                context.configuration.settings,
                synchronize_translation_strings=context.configuration.content_transfer_setup.translation_strings,
            )
        except Exception as e:
            self.error_tracker.track_directus_error(e, "fetchTranslationStrings")
            return TranslatableContent()

    @staticmethod
    def _export_result(export: ExportResult) -> SyncResult:
        details = export.model_dump()
        if export.nothing_to_export:
            return SyncResult(success=True, message="Localazy: Nothing to export", details=details)
        if export.failed_chunks:
            return SyncResult(
                success=False,
                message=f"Localazy: Exported {export.exported_chunks} chunks, {export.failed_chunks} failed",
                details=details,
            )
        return SyncResult(
            success=True,
            message=f"Localazy: Exported {export.exported_chunks} chunks",
            details=details,
        )

    # =========================================================================
    # Import
    # =========================================================================

    async def run_import(self) -> SyncResult:
        """Import translations from Localazy into Directus."""
        try:
            context = await self.open_context()
        except ConfigurationError as e:
            logger.error(str(e))
            return SyncResult(success=False, message=str(e))

        try:
            settings = context.configuration.settings
            languages = await self._languages(context).resolve_import_languages(settings, context.project)
            outcome = await self._importer(context).import_content(languages, context.enabled_fields, context.project)
            if not outcome.success:
                return SyncResult(success=False, message=outcome.message or NOTHING_TO_IMPORT)

            write_back = DirectusWriteBackService(
                self.backend.api,
                self.backend.data_model,
                self.error_tracker,
                delay_between=self.settings.import_delay_between,
            )
            written = await write_back.upsert_from_localazy_content(outcome.content, settings)

            details = written.model_dump()
            details["failed_languages"] = outcome.failed_languages
            success = not outcome.failed_languages and not written.failed_items and not written.failed_collections
            message = f"Localazy: Imported {written.updated_items} items and {written.translation_strings} translation string writes"
            if not success:
                message += " with errors"
            return SyncResult(success=success, message=message, details=details)
        except Exception as e:
            self.error_tracker.track_localazy_error(e, "import")
            return SyncResult(success=False, message=f"Localazy: Import failed: {e}")
        finally:
            await context.close()

    # =========================================================================
    # Deprecation
    # =========================================================================

    async def fetch_localazy_content_in_source_language(self, context: SyncContext) -> LocalazyContent | None:
        source = find_by_id(context.project.source_language)
        locale = source.locale if source else ""
        language = DirectusLocalazyLanguage(original_form=locale, localazy_form=locale, directus_form="")
        outcome = await self._importer(context).import_content([language], context.enabled_fields, context.project)
        return outcome.content if outcome.success else None

    async def deprecate_deleted_collection_items(self, collection: str, item_ids: list[str]) -> int:
        """
        Deprecate the Localazy keys of deleted collection items.

        Best effort: the delete hook may fire before Directus checks
        permissions, so any failure is logged as a warning and tracked,
        never raised. Returns the number of keys deprecated.
        """
        ids = {str(i) for i in item_ids}

        def collect(content: LocalazyContent) -> set[str]:
            block = content.collections.get(collection)
            if block is None:
                return set()
            return {
                entry.localazy_key.id
                for item_id, per_language in block.items.items()
                if item_id in ids
                for bucket in per_language
                for entry in bucket.items
            }

        count = await self._deprecate(collect, "deprecateDeletedCollectionItems")
        if count is not None:
            logger.info(f"Localazy: Deprecated {count} keys for collection {collection}")
        return count or 0

    async def deprecate_deleted_translation_strings(self, string_ids: list[str]) -> int:
        """Deprecate the Localazy keys of deleted translation strings; see above."""
        ids = {str(i) for i in string_ids}

        def collect(content: LocalazyContent) -> set[str]:
            return {
                block.localazy_key.id
                for block in content.translation_strings.values()
                if block.directus_id in ids
            }

        count = await self._deprecate(collect, "deprecateDeletedTranslationStrings")
        if count is not None:
            logger.info(f"Localazy: Deprecated {count} translation strings")
        return count or 0

    async def _deprecate(self, collect: Callable[[LocalazyContent], set[str]], operation: str) -> int | None:
        context: SyncContext | None = None
        try:
            context = await self.open_context()
            if not context.configuration.settings.automated_deprecation:
                return None

            content = await self.fetch_localazy_content_in_source_language(context)
            if content is None:
                logger.warning("Localazy: Could not read keys to deprecate")
                return None

            return await self.deprecate_keys(context, sorted(collect(content)))
        except ConfigurationError as e:
            logger.error(str(e))
            return None
        except Exception as e:
            logger.warning(f"Localazy: Deprecation failed; the deletion may have been rejected by a permission check: {e}")
            self.error_tracker.track_directus_error(e, operation)
            return None
        finally:
            if context is not None:
                await context.close()

    async def deprecate_keys(self, context: SyncContext, key_ids: list[str]) -> int:
        queue = AsyncBatchQueue()
        for key_id in key_ids:
            queue.add(self._deprecate_job(context, key_id))

        deprecated = 0
        for key_id, result in zip(key_ids, await queue.execute(delay_between=self.settings.deprecation_delay_between)):
            if result.error is None:
                deprecated += 1
                continue
            logger.warning(
                f"Localazy: Deprecating key {key_id} failed; it may have been rejected by a permission check: {result.error}"
            )
            self.error_tracker.track_localazy_error(result.error, "deprecateKeys", {"key": key_id})
        return deprecated

    @staticmethod
    def _deprecate_job(context: SyncContext, key_id: str):
        async def job() -> None:
            await context.api.update_key(context.project.id, key_id, deprecated=0)
        return job
