"""
FastAPI application for the Localazy sync service.

Directus flows (or any webhook sender) call the hook endpoints when
items or translation strings change; operators trigger full runs
through the sync endpoints.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from localazy_sync.config import configure_logging, get_settings
from localazy_sync.core.errors import ErrorCategory, ErrorTracker
from localazy_sync.core.models import SyncResult
from localazy_sync.i18n.mapping import MappingValidation, validate_mappings
from localazy_sync.integrations.sentry import init_sentry, sentry_reporter
from localazy_sync.services.synchronization import SynchronizationService
from localazy_sync.storage import DirectusBackend, create_memory_backend, create_rest_backend

logger = logging.getLogger(__name__)


# =============================================================================
# App State
# =============================================================================


class AppState:
    """Application state - initialized at startup."""

    backend: DirectusBackend
    error_tracker: ErrorTracker
    sync_service: SynchronizationService


state = AppState()


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings = get_settings()
    configure_logging(settings)

    sentry_enabled = init_sentry(settings)
    state.error_tracker = ErrorTracker(reporter=sentry_reporter if sentry_enabled else None)

    if settings.use_directus_rest:
        state.backend = await create_rest_backend(settings)
    else:
        logger.warning("DIRECTUS_TOKEN not set - using the in-memory Directus")
        state.backend = create_memory_backend()

    state.sync_service = SynchronizationService(state.backend, state.error_tracker, settings)

    logger.info(f"Localazy sync API starting in {settings.environment} mode")

    yield

    logger.info("Localazy sync API shutting down")
    await state.backend.close()


# =============================================================================
# App Setup
# =============================================================================


app = FastAPI(
    title="Localazy Sync API",
    description="Synchronizes Directus content with Localazy",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Dependencies
# =============================================================================


def get_sync_service() -> SynchronizationService:
    return state.sync_service


def get_error_tracker() -> ErrorTracker:
    return state.error_tracker


# =============================================================================
# Request/Response Models
# =============================================================================


class ItemsHookPayload(BaseModel):
    """Body of an items action hook."""

    collection: str
    keys: list[str | int] = Field(default_factory=list)
    key: str | int | None = None  # items.create sends a single key

    @property
    def all_keys(self) -> list[str]:
        keys = list(self.keys)
        if self.key is not None and self.key not in keys:
            keys.append(self.key)
        return [str(k) for k in keys]


class TranslationStringsHookPayload(BaseModel):
    keys: list[str | int] = Field(default_factory=list)


class HookAccepted(BaseModel):
    accepted: bool = True
    event: str
    action: str


class ValidateMappingsRequest(BaseModel):
    language_mappings: str = "[]"


class ErrorsResponse(BaseModel):
    errors: list[dict[str, Any]]
    counts: dict[str, int]


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "localazy-sync"}


# =============================================================================
# Hooks
# =============================================================================

HOOK_EVENTS = ("create", "update", "delete")


def _check_event(event: str) -> None:
    if event not in HOOK_EVENTS:
        raise HTTPException(status_code=404, detail=f"Unknown hook event: {event}")


@app.post("/hooks/items/{event}", status_code=202, response_model=HookAccepted)
async def items_hook(
    event: str,
    payload: ItemsHookPayload,
    background_tasks: BackgroundTasks,
    service: SynchronizationService = Depends(get_sync_service),
):
    """
    Items created, updated or deleted in a collection.

    Changes are exported, deletions deprecate the matching Localazy
    keys. The work runs after the response, like a Directus action.
    """
    _check_event(event)
    keys = payload.all_keys

    if event == "delete":
        if not keys:
            return HookAccepted(event=event, action="ignored")
        background_tasks.add_task(service.deprecate_deleted_collection_items, payload.collection, keys)
        return HookAccepted(event=event, action="deprecate")

    background_tasks.add_task(service.export_collection_content, payload.collection, keys)
    return HookAccepted(event=event, action="export")


@app.post("/hooks/translation-strings/{event}", status_code=202, response_model=HookAccepted)
async def translation_strings_hook(
    event: str,
    background_tasks: BackgroundTasks,
    payload: TranslationStringsHookPayload | None = None,
    service: SynchronizationService = Depends(get_sync_service),
):
    """Translation strings (or the legacy settings field) changed."""
    _check_event(event)

    if event == "delete":
        keys = [str(k) for k in (payload.keys if payload else [])]
        if not keys:
            return HookAccepted(event=event, action="ignored")
        background_tasks.add_task(service.deprecate_deleted_translation_strings, keys)
        return HookAccepted(event=event, action="deprecate")

    background_tasks.add_task(service.export_translation_strings)
    return HookAccepted(event=event, action="export")


# =============================================================================
# Manual runs
# =============================================================================


@app.post("/sync/export", response_model=SyncResult)
async def sync_export(service: SynchronizationService = Depends(get_sync_service)):
    """Export every enabled collection and the translation strings."""
    return await service.run_export()


@app.post("/sync/import", response_model=SyncResult)
async def sync_import(service: SynchronizationService = Depends(get_sync_service)):
    """Import translations from Localazy."""
    return await service.run_import()


# =============================================================================
# Language mappings
# =============================================================================


@app.post("/mappings/validate", response_model=MappingValidation)
async def mappings_validate(request: ValidateMappingsRequest):
    """Validate custom language mappings before they are saved."""
    return validate_mappings(request.language_mappings)


# =============================================================================
# Errors
# =============================================================================


@app.get("/errors", response_model=ErrorsResponse)
async def list_errors(
    category: ErrorCategory | None = None,
    tracker: ErrorTracker = Depends(get_error_tracker),
):
    """Errors absorbed by recent synchronizations, oldest first."""
    records = tracker.get_errors_by_category(category) if category else tracker.get_errors()
    return ErrorsResponse(
        errors=[record.model_dump(mode="json") for record in records],
        counts={c.value: n for c, n in tracker.get_error_counts().items()},
    )


@app.delete("/errors", status_code=204)
async def clear_errors(tracker: ErrorTracker = Depends(get_error_tracker)):
    tracker.clear()
