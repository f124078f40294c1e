"""
Shared fixtures: a fake clock, a fake Localazy client and a seeded
in-memory Directus holding a small blog.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from localazy_sync.config import Settings
from localazy_sync.core.errors import ApiError, ErrorTracker
from localazy_sync.core.models import (
    CONTENT_TRANSFER_SETUP_COLLECTION,
    LOCALAZY_DATA_COLLECTION,
    SETTINGS_COLLECTION,
    KeyValueEntry,
    LocalazyFile,
    LocalazyKey,
    LocalazyProject,
    LocalazyProjectLanguage,
)
from localazy_sync.localazy.client import LocalazyClient
from localazy_sync.localazy.throttle import RequestThrottler
from localazy_sync.services.synchronization import SynchronizationService
from localazy_sync.storage.base import TRANSLATIONS_SYSTEM_COLLECTION
from localazy_sync.storage.memory import InMemoryDirectus, create_memory_backend


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Monotonic clock advanced only by the patched ``sleep``."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock(monkeypatch):
    """Replace every pacing sleep with the fake clock."""
    fake = FakeClock()
    monkeypatch.setattr("localazy_sync.localazy.throttle.sleep", fake.sleep)
    monkeypatch.setattr("localazy_sync.services.queue.sleep", fake.sleep)
    return fake


# =============================================================================
# Localazy
# =============================================================================


def key(key_id: str, path: str, value: Any) -> LocalazyKey:
    return LocalazyKey(id=key_id, key=path.split("/"), value=value)


class FakeLocalazyClient(LocalazyClient):
    """Records every call; keys are served per Localazy language."""

    def __init__(
        self,
        project: LocalazyProject | None = None,
        files: list[LocalazyFile] | None = None,
        keys: dict[str, list[LocalazyKey]] | None = None,
    ):
        self.project = project or LocalazyProject(
            id="p1",
            name="Blog",
            source_language=1033,
            languages=[
                LocalazyProjectLanguage(id=1033, code="en", name="English"),
                LocalazyProjectLanguage(id=1031, code="de", name="German"),
                LocalazyProjectLanguage(id=1036, code="fr", name="French"),
            ],
        )
        self.files = files if files is not None else [LocalazyFile(id="f1", name="directus.json")]
        self.keys = keys or {}
        self.imports: list[tuple[str, str, str, KeyValueEntry]] = []
        self.updates: list[tuple[str, str, int]] = []
        self.fail_languages: set[str] = set()
        self.fail_imports_for: set[str] = set()
        self.fail_update_keys: set[str] = set()
        self.closed = False

    async def import_json(self, project_id, file_name, language, content):
        if language in self.fail_imports_for:
            raise ApiError("Upload rejected", status_code=400)
        self.imports.append((project_id, file_name, language, content))
        return {"result": True}

    async def list_files(self, project_id):
        return list(self.files)

    async def list_keys(self, project_id, file_id, language):
        if language in self.fail_languages:
            raise ApiError("Language unavailable", status_code=500)
        return list(self.keys.get(language, []))

    async def list_projects(self, organization=True, languages=True):
        return [self.project]

    async def update_key(self, project_id, key_id, deprecated=0):
        if key_id in self.fail_update_keys:
            raise ApiError("Forbidden", status_code=403)
        self.updates.append((project_id, key_id, deprecated))

    async def close(self):
        self.closed = True


@pytest.fixture
def localazy():
    return FakeLocalazyClient()


# =============================================================================
# Directus
# =============================================================================


SYNC_SETTINGS = {
    "id": 1,
    "language_collection": "languages",
    "language_code_field": "code",
    "source_language": "en",
    "upload_existing_translations": 1,
    "import_source_language": 0,
    "automated_upload": 1,
    "automated_deprecation": 1,
    "skip_empty_strings": 1,
    "create_missing_languages_in_directus": 0,
    "language_mappings": None,
}

ARTICLE_FIELDS = [
    {"collection": "articles", "field": "id", "type": "integer"},
    {
        "collection": "articles",
        "field": "translations",
        "type": "alias",
        "meta": {"special": ["translations"], "interface": "translations"},
    },
]

ARTICLE_TRANSLATION_FIELDS = [
    {"collection": "articles_translations", "field": "title", "type": "string", "schema": {"max_length": 255}},
    {"collection": "articles_translations", "field": "body", "type": "text", "schema": {"comment": "Main text"}},
]


def seed_blog(directus: InMemoryDirectus) -> InMemoryDirectus:
    directus.add_collection(SETTINGS_COLLECTION, items=[dict(SYNC_SETTINGS)])
    directus.add_collection(CONTENT_TRANSFER_SETUP_COLLECTION, items=[{
        "id": 1,
        "enabled_fields": json.dumps([{"collection": "articles", "fields": ["title", "body"]}]),
        "translation_strings": True,
    }])
    directus.add_collection(LOCALAZY_DATA_COLLECTION, items=[{
        "id": 1,
        "access_token": "token",
        "project_id": "p1",
    }])

    directus.add_collection("languages", items=[
        {"id": "en", "code": "en", "name": "English"},
        {"id": "de", "code": "de", "name": "German"},
        {"id": "fr", "code": "fr", "name": "French"},
    ])

    directus.add_collection("articles", fields=ARTICLE_FIELDS, items=[
        {
            "id": 1,
            "translations": [
                {"id": 11, "articles_id": 1, "languages_code": "en", "title": "Hello", "body": ""},
                {"id": 12, "articles_id": 1, "languages_code": "de", "title": "Hallo", "body": "Welt"},
            ],
        },
        {
            "id": 2,
            "translations": [
                {"id": 21, "articles_id": 2, "languages_code": {"code": "en"}, "title": "Second", "body": "Text"},
            ],
        },
    ])
    directus.add_collection("articles_translations", fields=ARTICLE_TRANSLATION_FIELDS)
    directus.add_relation({
        "collection": "articles_translations",
        "field": "articles_id",
        "related_collection": "articles",
        "meta": {"one_field": "translations", "junction_field": "languages_code"},
    })
    directus.add_relation({
        "collection": "articles_translations",
        "field": "languages_code",
        "related_collection": "languages",
        "meta": {"one_field": None, "junction_field": "articles_id"},
    })

    directus.add_collection(TRANSLATIONS_SYSTEM_COLLECTION, items=[
        {"id": "t1", "key": "welcome", "language": "en", "value": "Welcome"},
        {"id": "t2", "key": "welcome", "language": "de", "value": "Willkommen"},
    ])
    return directus


@pytest.fixture
def directus():
    return seed_blog(InMemoryDirectus())


@pytest.fixture
def backend(directus):
    return create_memory_backend(directus)


@pytest.fixture
def tracker():
    return ErrorTracker()


@pytest.fixture
def settings():
    return Settings(localazy_token="", directus_token="", sentry_dsn="")


@pytest.fixture
def sync_service(backend, tracker, settings, localazy, clock):
    return SynchronizationService(
        backend,
        tracker,
        settings,
        throttler=RequestThrottler(clock=clock),
        client_factory=lambda token: localazy,
    )
