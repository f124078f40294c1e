"""
Custom language code mappings between Directus and Localazy.

Directus usually stores BCP 47 tags (``zh-Hans``, ``pt-BR``) while
Localazy uses its own locale notation (``zh-CN#Hans``, ``pt_BR``). Most
codes convert by swapping the first '-' for '_'; the rest need an
explicit mapping, configured as a JSON array in the sync settings:

    [{"directusCode": "zh-Hans", "localazyCode": "zh-CN#Hans"}]

Usage:
    service = LanguageMappingService(settings.language_mappings)
    service.transform_directus_to_localazy("zh-Hans")  # "zh-CN#Hans"
    service.transform_directus_to_localazy("en-US")    # "en_US"
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, Field

from localazy_sync.core.errors import ErrorTracker
from localazy_sync.core.models import LanguageMapping

logger = logging.getLogger(__name__)


class MappingValidation(BaseModel):
    """Outcome of validating a mappings JSON document."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class LanguageMappingService:
    """
    Bidirectional lookup of custom language code mappings.

    Falls back to the default transformation when a code has no
    mapping. Invalid JSON yields an empty mapping set; it is logged
    (and tracked when a tracker is given) but never raised.
    """

    def __init__(self, mappings_json: str | None = "[]", error_tracker: ErrorTracker | None = None):
        self._directus_to_localazy: dict[str, str] = {}
        self._localazy_to_directus: dict[str, str] = {}
        self._error_tracker = error_tracker
        self._load_mappings(mappings_json)

    def _load_mappings(self, mappings_json: str | None) -> None:
        try:
            mappings = json.loads(mappings_json or "[]")
        except ValueError as e:
            logger.error(f"Failed to parse language mappings: {e}")
            if self._error_tracker is not None:
                self._error_tracker.track_validation_error(
                    "Failed to parse language mappings", "loadLanguageMappings",
                )
            return

        if not isinstance(mappings, list):
            logger.error("Failed to parse language mappings: not an array")
            if self._error_tracker is not None:
                self._error_tracker.track_validation_error(
                    "Language mappings must be an array", "loadLanguageMappings",
                )
            return

        for mapping in mappings:
            if not isinstance(mapping, dict):
                continue
            directus_code = mapping.get("directusCode")
            localazy_code = mapping.get("localazyCode")
            if directus_code and localazy_code:
                self._directus_to_localazy[directus_code] = localazy_code
                self._localazy_to_directus[localazy_code] = directus_code

    # =========================================================================
    # Transformations
    # =========================================================================

    def transform_directus_to_localazy(self, directus_code: str) -> str:
        """Mapped Localazy code, else the first '-' replaced by '_'."""
        if directus_code in self._directus_to_localazy:
            return self._directus_to_localazy[directus_code]
        return directus_code.replace("-", "_", 1)

    def transform_localazy_to_directus(self, localazy_code: str) -> str:
        """Mapped Directus code, else the first '_' replaced by '-'."""
        if localazy_code in self._localazy_to_directus:
            return self._localazy_to_directus[localazy_code]
        return localazy_code.replace("_", "-", 1)

    # =========================================================================
    # Lookups
    # =========================================================================

    def has_custom_mapping(self, code: str) -> bool:
        return code in self._directus_to_localazy or code in self._localazy_to_directus

    def get_directus_mapping(self, directus_code: str) -> str | None:
        """Localazy code mapped to a Directus code, if any."""
        return self._directus_to_localazy.get(directus_code)

    def get_localazy_mapping(self, localazy_code: str) -> str | None:
        """Directus code mapped to a Localazy code, if any."""
        return self._localazy_to_directus.get(localazy_code)

    def get_all_mappings(self) -> list[LanguageMapping]:
        return [
            LanguageMapping(directus_code=directus_code, localazy_code=localazy_code)
            for directus_code, localazy_code in self._directus_to_localazy.items()
        ]

    def __len__(self) -> int:
        return len(self._directus_to_localazy)

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate_mappings(mappings_json: str | None) -> MappingValidation:
        """
        Validate a mappings JSON document.

        Collects every problem rather than stopping at the first one.
        Mappings are numbered from 1 in the messages.
        """
        errors: list[str] = []

        try:
            mappings = json.loads(mappings_json or "[]")
        except ValueError:
            return MappingValidation(valid=False, errors=["Invalid JSON format"])

        if not isinstance(mappings, list):
            return MappingValidation(valid=False, errors=["Mappings must be an array"])

        directus_codes: set[str] = set()
        localazy_codes: set[str] = set()

        for index, mapping in enumerate(mappings, start=1):
            if not isinstance(mapping, dict):
                mapping = {}
            _check_code(mapping.get("directusCode"), "Directus", index, directus_codes, errors)
            _check_code(mapping.get("localazyCode"), "Localazy", index, localazy_codes, errors)

        return MappingValidation(valid=not errors, errors=errors)


def _check_code(code: Any, label: str, index: int, seen: set[str], errors: list[str]) -> None:
    if not isinstance(code, str):
        errors.append(f"Mapping {index}: Missing or invalid {label} code")
    elif code.strip() == "":
        errors.append(f"Mapping {index}: {label} code cannot be empty")
    elif code in seen:
        errors.append(f'Mapping {index}: Duplicate {label} code "{code}"')
    else:
        seen.add(code)


def validate_mappings(mappings_json: str | None) -> MappingValidation:
    """Validate a mappings JSON document (convenience function)."""
    return LanguageMappingService.validate_mappings(mappings_json)
