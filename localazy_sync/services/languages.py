"""
Language resolution for synchronization runs.

Decides which languages an export uploads and which languages an import
fetches, in every form each language is known by.
"""

from __future__ import annotations

import logging

from localazy_sync.core.errors import ErrorTracker
from localazy_sync.core.models import (
    CreateMissingLanguages,
    DirectusLocalazyLanguage,
    LocalazyProject,
    LocalazyProjectLanguage,
    SyncSettings,
)
from localazy_sync.i18n.adapter import LanguageAdapter
from localazy_sync.i18n.languages import find_by_id, get_language_name
from localazy_sync.storage.base import DirectusApi

logger = logging.getLogger(__name__)


class SynchronizationLanguagesService:
    """
    Resolves export and import languages.

    Example:
        service = SynchronizationLanguagesService(directus, adapter)
        languages = await service.resolve_import_languages(settings, project)
    """

    def __init__(
        self,
        directus: DirectusApi,
        adapter: LanguageAdapter,
        error_tracker: ErrorTracker | None = None,
    ):
        self.directus = directus
        self.adapter = adapter
        self.error_tracker = error_tracker

    async def fetch_directus_languages(self, settings: SyncSettings) -> list[str]:
        """Codes of every language in the configured language collection."""
        items = await self.directus.fetch_items(
            settings.language_collection,
            {"fields": [settings.language_code_field], "limit": -1},
        )
        return [
            item[settings.language_code_field]
            for item in items
            if item.get(settings.language_code_field)
        ]

    # =========================================================================
    # Export
    # =========================================================================

    async def resolve_export_languages(self, settings: SyncSettings) -> list[str]:
        """Every Directus language when uploading existing translations, else the source language."""
        if settings.upload_existing_translations:
            return await self.fetch_directus_languages(settings)
        return [settings.source_language]

    # =========================================================================
    # Import
    # =========================================================================

    async def resolve_import_languages(
        self,
        settings: SyncSettings,
        project: LocalazyProject,
    ) -> list[DirectusLocalazyLanguage]:
        """
        Languages to fetch from Localazy.

        Starts from the Directus languages and appends the Localazy
        languages Directus does not know under either form. Missing
        languages are created in Directus first when configured. The
        source language is dropped, or relabeled to the configured
        Directus source language when importing it. Entries sharing a
        Directus form are de-duplicated; the first one wins, so Directus
        languages take precedence over Localazy ones.
        """
        directus_languages = await self.fetch_directus_languages(settings)
        localazy_source = find_by_id(project.source_language)
        localazy_source_locale = localazy_source.locale if localazy_source else ""

        directus_candidates = [
            DirectusLocalazyLanguage(
                original_form=code,
                directus_form=code,
                localazy_form=self.adapter.to_localazy(code),
            )
            for code in directus_languages
        ]

        candidates = list(directus_candidates)
        for language in project.languages:
            known = any(
                c.original_form == language.code or c.localazy_form == language.code
                for c in candidates
            )
            if not known:
                candidates.append(DirectusLocalazyLanguage(
                    original_form=language.code,
                    directus_form=self.adapter.to_directus(language.code),
                    localazy_form=language.code,
                ))

        if settings.create_missing_languages_in_directus != CreateMissingLanguages.NO:
            known_localazy_forms = {c.localazy_form for c in directus_candidates}
            missing = [
                language for language in project.languages
                if language.code not in known_localazy_forms
                and (
                    settings.create_missing_languages_in_directus == CreateMissingLanguages.ALL
                    or language.enabled
                )
            ]
            await self.create_languages(settings, missing)

        if not settings.import_source_language:
            candidates = [
                c for c in candidates
                if self.adapter.map_localazy_to_directus_source_language(
                    c.original_form, project.source_language, settings.source_language,
                ) != settings.source_language
            ]
        else:
            candidates = [
                c.model_copy(update={"directus_form": settings.source_language})
                if c.localazy_form == localazy_source_locale
                else c
                for c in candidates
            ]

        unique: dict[str, DirectusLocalazyLanguage] = {}
        for candidate in candidates:
            unique.setdefault(candidate.directus_form, candidate)
        return list(unique.values())

    async def create_languages(self, settings: SyncSettings, languages: list[LocalazyProjectLanguage]) -> int:
        """
        Create Localazy languages in the Directus language collection.

        Creations run one after the other; a failed creation is tracked
        and does not stop the rest. Returns how many were created.
        """
        created = 0
        for language in languages:
            try:
                await self.directus.create_item(settings.language_collection, {
                    settings.language_code_field: language.code,
                    "name": language.name or get_language_name(language.code),
                })
                created += 1
            except Exception as e:
                if self.error_tracker is None:
                    raise
                self.error_tracker.track_directus_error(e, "createLanguages", {"language": language.code})

        if created:
            logger.info(f"Localazy: Created {created} missing languages in Directus")
        return created
