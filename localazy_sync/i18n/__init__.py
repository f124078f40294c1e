"""
Language codes - mapping between Directus and Localazy conventions.

Usage:
    from localazy_sync.i18n import LanguageAdapter

    adapter = LanguageAdapter.from_mappings(settings.language_mappings)
    adapter.to_localazy("zh-Hans-CN")  # "zh_Hans-CN"
"""

from localazy_sync.i18n.adapter import (
    LanguageAdapter,
    LanguageCodeValidation,
)
from localazy_sync.i18n.languages import (
    LocalazyLanguage,
    LOCALAZY_LANGUAGES,
    get_localazy_languages,
    find_by_id,
    find_by_locale,
    get_language_name,
)
from localazy_sync.i18n.mapping import (
    LanguageMappingService,
    MappingValidation,
    validate_mappings,
)

__all__ = [
    # Adapter
    "LanguageAdapter",
    "LanguageCodeValidation",
    # Mappings
    "LanguageMappingService",
    "MappingValidation",
    "validate_mappings",
    # Catalog
    "LocalazyLanguage",
    "LOCALAZY_LANGUAGES",
    "get_localazy_languages",
    "find_by_id",
    "find_by_locale",
    "get_language_name",
]
