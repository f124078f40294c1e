"""
Core module - data models, errors and shared utilities.

This module contains:
- models: Persisted configuration, Localazy entities, translatable content
- errors: Exception taxonomy and the ErrorTracker
- utils: Shared utility functions
"""

from localazy_sync.core.models import (
    Configuration,
    ContentTransferSetup,
    CreateMissingLanguages,
    DirectusLocalazyLanguage,
    EnabledField,
    LanguageKeys,
    LanguageMapping,
    LocalazyContent,
    LocalazyData,
    LocalazyFile,
    LocalazyKey,
    LocalazyProject,
    LocalazyProjectLanguage,
    SyncDirection,
    SyncResult,
    SyncSettings,
    TranslatableContent,
    TranslationString,
)

from localazy_sync.core.errors import (
    ApiError,
    ConfigurationError,
    ErrorCategory,
    ErrorRecord,
    ErrorSeverity,
    ErrorTracker,
    NetworkError,
    SyncError,
    ValidationError,
)

from localazy_sync.core.utils import (
    merge_with_arrays,
    utc_now,
)

__all__ = [
    # Models
    "Configuration",
    "ContentTransferSetup",
    "CreateMissingLanguages",
    "DirectusLocalazyLanguage",
    "EnabledField",
    "LanguageKeys",
    "LanguageMapping",
    "LocalazyContent",
    "LocalazyData",
    "LocalazyFile",
    "LocalazyKey",
    "LocalazyProject",
    "LocalazyProjectLanguage",
    "SyncDirection",
    "SyncResult",
    "SyncSettings",
    "TranslatableContent",
    "TranslationString",
    # Errors
    "ApiError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorRecord",
    "ErrorSeverity",
    "ErrorTracker",
    "NetworkError",
    "SyncError",
    "ValidationError",
    # Utils
    "merge_with_arrays",
    "utc_now",
]
