"""
Language adapter between Directus and Localazy.

Wraps a LanguageMappingService with the source-language rules and the
Localazy catalog lookups the synchronization needs. One adapter is
built per invocation from the persisted language mappings.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from localazy_sync.core.errors import ErrorTracker
from localazy_sync.i18n.languages import find_by_id, find_by_locale
from localazy_sync.i18n.mapping import LanguageMappingService


# en, en-US, zh-Hans, zh-Hans-CN, zh-CN-#Hans
_LANGUAGE_CODE_PATTERN = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z]{2,4})?(-[a-zA-Z]{2})?(-[a-zA-Z0-9#]+)?$")
_MAX_LANGUAGE_CODE_LENGTH = 35


class LanguageAdapter:
    """
    Converts language codes between the two ecosystems.

    Example:
        adapter = LanguageAdapter(LanguageMappingService(settings.language_mappings))
        adapter.to_localazy("en-US")  # "en_US"
        adapter.to_directus("en_US")  # "en-US"
    """

    def __init__(self, mapping_service: LanguageMappingService | None = None):
        self.mapping_service = mapping_service if mapping_service is not None else LanguageMappingService()

    @classmethod
    def from_mappings(cls, mappings_json: str | None, error_tracker: ErrorTracker | None = None) -> LanguageAdapter:
        return cls(LanguageMappingService(mappings_json, error_tracker))

    def to_localazy(self, directus_code: str) -> str:
        return self.mapping_service.transform_directus_to_localazy(directus_code)

    def to_directus(self, localazy_code: str) -> str:
        return self.mapping_service.transform_localazy_to_directus(localazy_code)

    def has_custom_mapping(self, code: str) -> bool:
        return self.mapping_service.has_custom_mapping(code)

    # =========================================================================
    # Source language
    # =========================================================================

    def map_directus_to_localazy_source_language(
        self,
        localazy_source_language_id: int | None,
        directus_source_language: str,
    ) -> str:
        """
        Localazy locale the source branch is uploaded under.

        The project's numeric source language id wins when the catalog
        knows it; otherwise the configured Directus value is used as is.
        """
        language = find_by_id(localazy_source_language_id)
        if language is None:
            return directus_source_language
        return language.locale

    def map_localazy_to_directus_source_language(
        self,
        processed_language: str,
        localazy_source_language_id: int | None,
        directus_source_language: str,
    ) -> str:
        """
        Directus form of a Localazy language, folding the project's
        source language onto the configured Directus source language.
        """
        language = find_by_id(localazy_source_language_id)
        if language is not None and language.locale == processed_language:
            return directus_source_language
        return processed_language

    def resolve_localazy_language_id(self, directus_code: str) -> int | None:
        """Catalog id of a Directus code, if Localazy knows the language."""
        language = find_by_locale(self.to_localazy(directus_code))
        return language.localazy_id if language else None

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate_language_code(code: str | None) -> LanguageCodeValidation:
        if not code or not isinstance(code, str):
            return LanguageCodeValidation(
                valid=False, code=code or "", error="Language code must be a non-empty string",
            )

        trimmed = code.strip()
        if not trimmed:
            return LanguageCodeValidation(valid=False, code=trimmed, error="Language code cannot be empty")
        if len(trimmed) > _MAX_LANGUAGE_CODE_LENGTH:
            return LanguageCodeValidation(
                valid=False, code=trimmed, error="Language code is too long (max 35 characters)",
            )
        if not _LANGUAGE_CODE_PATTERN.match(trimmed):
            return LanguageCodeValidation(
                valid=False,
                code=trimmed,
                error=f'Invalid language code format: "{trimmed}". Expected format like: en, en-US, zh-Hans',
            )
        return LanguageCodeValidation(valid=True, code=trimmed)

    def validate_language_codes(self, codes: list[str]) -> list[LanguageCodeValidation]:
        return [self.validate_language_code(code) for code in codes]

    def is_recognized_by_localazy(self, directus_code: str) -> bool:
        return self.resolve_localazy_language_id(directus_code) is not None


class LanguageCodeValidation(BaseModel):
    valid: bool
    code: str
    error: str | None = None
