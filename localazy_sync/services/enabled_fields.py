"""Enabled fields - (de)serialization of the per-collection field selection."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from localazy_sync.core.errors import ErrorTracker
from localazy_sync.core.models import EnabledField

logger = logging.getLogger(__name__)


def parse_from_database(raw: Any, error_tracker: ErrorTracker | None = None) -> list[EnabledField]:
    """
    Parse the persisted enabled fields.

    Accepts the JSON text Directus stores, or an already decoded list.
    Anything unparseable yields an empty selection and, when a tracker
    is given, a validation error.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        if not raw:
            return []
        try:
            raw = json.loads(raw)
        except ValueError:
            _reject("Enabled fields are not valid JSON", error_tracker)
            return []

    if not isinstance(raw, list):
        _reject("Enabled fields must be an array", error_tracker)
        return []

    try:
        return [EnabledField.model_validate(entry) for entry in raw]
    except ValidationError as e:
        _reject("Enabled fields are malformed", error_tracker, {"error_count": e.error_count()})
        return []


def _reject(message: str, error_tracker: ErrorTracker | None, details: dict[str, Any] | None = None) -> None:
    if error_tracker is None:
        logger.warning(f"{message}, ignoring them")
        return
    error_tracker.track_validation_error(message, "parseEnabledFields", details)


def prepare_for_database(enabled_fields: Any) -> str:
    """Serialize enabled fields to JSON text; non-lists become ``"[]"``."""
    if not isinstance(enabled_fields, list):
        return "[]"
    return json.dumps([
        entry.model_dump() if isinstance(entry, EnabledField) else entry
        for entry in enabled_fields
    ])


def fields_for_collection(enabled_fields: list[EnabledField], collection: str) -> set[str]:
    """Every enabled field name of a collection."""
    return {
        field
        for entry in enabled_fields
        if entry.collection == collection
        for field in entry.fields
    }


def enabled_collections(enabled_fields: list[EnabledField]) -> list[str]:
    """Collections with at least one enabled entry, in first-seen order."""
    return list(dict.fromkeys(entry.collection for entry in enabled_fields))
