"""
Configuration and fixture loader.

Loads a synchronization Configuration, or a complete Directus snapshot
for the in-memory backend, from YAML files. Used by the CLI to run a
synchronization without a Directus instance.

A snapshot file looks like:

    configuration:
      settings:
        language_collection: languages
        language_code_field: code
        source_language: en-US
      content_transfer_setup:
        enabled_fields: [{collection: articles, fields: [title]}]
      localazy_data:
        access_token: ...
    collections:
      languages:
        items: [{code: en-US}, {code: de-DE}]
      articles:
        fields: [...]
        items: [...]
    relations: [...]
    settings:
      translation_strings: [...]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from localazy_sync.core.errors import ConfigurationError
from localazy_sync.core.models import (
    CONTENT_TRANSFER_SETUP_COLLECTION,
    LOCALAZY_DATA_COLLECTION,
    SETTINGS_COLLECTION,
    Configuration,
)
from localazy_sync.storage.base import DirectusBackend
from localazy_sync.storage.memory import InMemoryDirectus, create_memory_backend


class ConfigLoader:
    """
    Loads YAML configuration files.

    Example:
        loader = ConfigLoader()
        backend = loader.load_memory_backend("fixtures/blog.yaml")
    """

    def load_yaml(self, path: Path | str) -> dict[str, Any]:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
        return data

    def load_configuration(self, path: Path | str) -> Configuration:
        """Load the ``configuration`` section (or the whole file) as a Configuration."""
        data = self.load_yaml(path)
        return Configuration.model_validate(data.get("configuration", data))

    def load_memory_backend(self, path: Path | str) -> DirectusBackend:
        """Build an InMemoryDirectus from a snapshot file."""
        data = self.load_yaml(path)
        directus = InMemoryDirectus()

        configuration = Configuration.model_validate(data.get("configuration") or {})
        self.seed_configuration(directus, configuration)

        for collection, entry in (data.get("collections") or {}).items():
            entry = entry or {}
            directus.add_collection(collection, items=entry.get("items") or [], fields=entry.get("fields"))

        for relation in data.get("relations") or []:
            directus.add_relation(relation)

        if "settings" in data:
            directus.set_settings(data["settings"])

        return create_memory_backend(directus)

    @staticmethod
    def seed_configuration(directus: InMemoryDirectus, configuration: Configuration) -> None:
        """Store a Configuration as the three Directus records it is read from."""
        settings = configuration.settings.model_dump()
        settings["create_missing_languages_in_directus"] = int(settings["create_missing_languages_in_directus"])
        directus.add_collection(SETTINGS_COLLECTION, items=[{"id": 1, **settings}])

        # enabled_fields is already the JSON text Directus stores
        setup = configuration.content_transfer_setup.model_dump()
        directus.add_collection(CONTENT_TRANSFER_SETUP_COLLECTION, items=[{"id": 1, **setup}])

        directus.add_collection(LOCALAZY_DATA_COLLECTION, items=[{"id": 1, **configuration.localazy_data.model_dump()}])
