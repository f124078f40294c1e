"""
Directus access.

Implementations:
- DirectusApi / DirectusDataModel → RestDirectusApi / RestDirectusDataModel (REST)
- DirectusApi / DirectusDataModel → InMemoryDirectus (development, tests)
"""

from localazy_sync.storage.base import (
    DirectusApi,
    DirectusDataModel,
    DirectusBackend,
    is_translation_field,
)
from localazy_sync.storage.memory import InMemoryDirectus, create_memory_backend
from localazy_sync.storage.rest import create_rest_backend

__all__ = [
    "DirectusApi",
    "DirectusDataModel",
    "DirectusBackend",
    "is_translation_field",
    "InMemoryDirectus",
    "create_memory_backend",
    "create_rest_backend",
]
