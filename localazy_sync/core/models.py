"""
Core data models for the sync platform.

These models represent the fundamental entities on both sides of the
bridge: the configuration persisted in Directus, the content flattened
for Localazy, and the content reconstructed from Localazy keys.
"""

from __future__ import annotations

import json
from enum import Enum, IntEnum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Prefix marking a metadata sibling of a translatable value
META_IDENTIFIER = "@"

# First path segment of free-standing translation strings on Localazy
TRANSLATION_STRINGS_MARKER = "translation_strings"

# The one Localazy file this integration reads and writes
LOCALAZY_FILE_NAME = "directus.json"

# Directus collections holding the persisted configuration
SETTINGS_COLLECTION = "localazy_settings"
CONTENT_TRANSFER_SETUP_COLLECTION = "localazy_content_transfer_setup"
LOCALAZY_DATA_COLLECTION = "localazy_config_data"

DEFAULT_LANGUAGE_FK_FIELD = "languages_code"


# Nested mapping of path segments to string leaves and metadata siblings
KeyValueEntry = dict[str, Any]


# =============================================================================
# Enums
# =============================================================================


class CreateMissingLanguages(IntEnum):
    """Whether Localazy-only languages are created in Directus on import."""

    NO = 0
    ALL = 1
    ONLY_NON_HIDDEN = 2


class SyncDirection(str, Enum):
    """Direction of a synchronization run."""

    EXPORT = "export"
    IMPORT = "import"


# =============================================================================
# Language mapping
# =============================================================================


class LanguageMapping(BaseModel):
    """
    A custom mapping between a Directus and a Localazy language code.

    Used when the default transformation (swapping '-' and '_') is not
    enough, e.g. Directus ``zh-Hans`` vs Localazy ``zh-CN#Hans``.
    """

    model_config = ConfigDict(populate_by_name=True)

    directus_code: str = Field(alias="directusCode")
    localazy_code: str = Field(alias="localazyCode")
    description: str | None = None


class DirectusLocalazyLanguage(BaseModel):
    """A language taking part in an import, in every form it is known by."""

    original_form: str
    directus_form: str
    localazy_form: str


# =============================================================================
# Persisted configuration
# =============================================================================


class DirectusRecord(BaseModel):
    """A row read from Directus; null columns fall back to defaults."""

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class SyncSettings(DirectusRecord):
    """Row of the ``localazy_settings`` collection."""

    language_collection: str = ""
    language_code_field: str = ""
    source_language: str = ""
    localazy_oauth_response: str = ""
    import_source_language: bool = False
    upload_existing_translations: bool = False
    automated_upload: bool = True
    automated_deprecation: bool = True
    skip_empty_strings: bool = True
    create_missing_languages_in_directus: CreateMissingLanguages = CreateMissingLanguages.ONLY_NON_HIDDEN
    language_mappings: str = "[]"

    @field_validator("language_mappings", mode="before")
    @classmethod
    def _mappings_default(cls, value: Any) -> Any:
        return value or "[]"


class EnabledField(BaseModel):
    """Fields of one collection that take part in the synchronization."""

    model_config = ConfigDict(extra="allow")

    collection: str
    fields: list[str] = Field(default_factory=list)


class ContentTransferSetup(DirectusRecord):
    """Row of the ``localazy_content_transfer_setup`` collection."""

    enabled_fields: str = "[]"
    translation_strings: bool = True

    @field_validator("enabled_fields", mode="before")
    @classmethod
    def _enabled_fields_text(cls, value: Any) -> Any:
        # json columns come back already decoded
        if isinstance(value, list):
            return json.dumps(value)
        return value or "[]"


class LocalazyData(DirectusRecord):
    """Row of the ``localazy_config_data`` collection."""

    access_token: str = ""
    user_id: str = ""
    user_name: str = ""
    project_id: str = ""
    project_url: str = ""
    project_name: str = ""
    org_id: str = ""


class Configuration(BaseModel):
    """Everything one synchronization invocation reads from Directus."""

    settings: SyncSettings = Field(default_factory=SyncSettings)
    content_transfer_setup: ContentTransferSetup = Field(default_factory=ContentTransferSetup)
    localazy_data: LocalazyData = Field(default_factory=LocalazyData)


# =============================================================================
# Localazy entities
# =============================================================================


class LocalazyProjectLanguage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    code: str
    name: str = ""
    enabled: bool = True


class LocalazyProject(BaseModel):
    """The subset of a Localazy project the synchronization relies on."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str = ""
    org_id: str = Field(default="", alias="orgId")
    source_language: int = Field(default=0, alias="sourceLanguage")
    languages: list[LocalazyProjectLanguage] = Field(default_factory=list)


class LocalazyFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    type: str = "json"


class LocalazyKey(BaseModel):
    """A remote key: stable id, path segments and current value."""

    model_config = ConfigDict(extra="ignore")

    id: str
    key: list[str]
    value: Any = None


class LanguageKeys(BaseModel):
    """All keys fetched from Localazy for one (Directus-form) language."""

    language: str
    keys: list[LocalazyKey] = Field(default_factory=list)


# =============================================================================
# Translatable content (export side)
# =============================================================================


class TranslatableContent(BaseModel):
    """Flattened content, split into the source branch and the others."""

    source_language: KeyValueEntry = Field(default_factory=dict)
    other_languages: dict[str, KeyValueEntry] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.source_language and not any(self.other_languages.values())


class TranslationString(BaseModel):
    """A free-standing Directus translation string in every language."""

    id: str | int | None = None
    key: str
    translations: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Localazy content (import side)
# =============================================================================


class LocalazyCollectionItem(BaseModel):
    """One translated field value pointing back at its Localazy key."""

    translation_field: str
    field: str
    value: Any
    localazy_key: LocalazyKey


class LocalazyItemsInLanguage(BaseModel):
    language: str
    items: list[LocalazyCollectionItem] = Field(default_factory=list)


class LocalazyCollectionBlock(BaseModel):
    translation_fields: list[str] = Field(default_factory=list)
    items: dict[str, list[LocalazyItemsInLanguage]] = Field(default_factory=dict)


class LocalazyTranslationStringBlock(BaseModel):
    key: str
    directus_id: str
    translations: dict[str, Any] = Field(default_factory=dict)
    localazy_key: LocalazyKey


class LocalazyContent(BaseModel):
    """Localazy keys regrouped into Directus collections and strings."""

    collections: dict[str, LocalazyCollectionBlock] = Field(default_factory=dict)
    translation_strings: dict[str, LocalazyTranslationStringBlock] = Field(default_factory=dict)


# =============================================================================
# Language references on translation rows
# =============================================================================


class InlineLanguage(BaseModel):
    """The language FK holds the code itself."""

    code: str


class ExpandedLanguage(BaseModel):
    """The language FK was expanded into the related language record."""

    record: dict[str, Any]


LanguageRef = Union[InlineLanguage, ExpandedLanguage]


def language_ref(value: Any) -> LanguageRef | None:
    """Tag a raw language FK value, or ``None`` when it is neither form."""
    if isinstance(value, str):
        return InlineLanguage(code=value)
    if isinstance(value, dict):
        return ExpandedLanguage(record=value)
    return None


def extract_language_code(value: Any, code_field: str = "code") -> str | None:
    """Resolve a raw language FK value to a language code."""
    ref = language_ref(value)
    if isinstance(ref, InlineLanguage):
        return ref.code
    if isinstance(ref, ExpandedLanguage):
        code = ref.record.get(code_field)
        return code if isinstance(code, str) else None
    return None


# =============================================================================
# Outcomes
# =============================================================================


class SyncResult(BaseModel):
    """Human-readable status of one synchronization entry point."""

    success: bool
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
