"""Services - content transformation, batching and the synchronization flows."""

from localazy_sync.services.queue import AsyncBatchQueue, JobResult, run_paced
from localazy_sync.services.content import (
    ContentFromCollections,
    ContentFromTranslationStrings,
    merge_contents,
    split_content_into_chunks,
)
from localazy_sync.services.localazy_content import ContentFromLocalazyService
from localazy_sync.services.languages import SynchronizationLanguagesService
from localazy_sync.services.translatable_collections import (
    TranslatableCollection,
    TranslatableCollectionsService,
)
from localazy_sync.services.translation_strings import TranslationStringsService
from localazy_sync.services.export import ExportResult, ExportToLocalazyService
from localazy_sync.services.importer import (
    DirectusWriteBackService,
    ImportFromLocalazyService,
    ImportOutcome,
    WriteBackResult,
)
from localazy_sync.services.synchronization import SyncContext, SynchronizationService

__all__ = [
    "AsyncBatchQueue",
    "JobResult",
    "run_paced",
    "ContentFromCollections",
    "ContentFromTranslationStrings",
    "merge_contents",
    "split_content_into_chunks",
    "ContentFromLocalazyService",
    "SynchronizationLanguagesService",
    "TranslatableCollection",
    "TranslatableCollectionsService",
    "TranslationStringsService",
    "ExportResult",
    "ExportToLocalazyService",
    "DirectusWriteBackService",
    "ImportFromLocalazyService",
    "ImportOutcome",
    "WriteBackResult",
    "SyncContext",
    "SynchronizationService",
]
