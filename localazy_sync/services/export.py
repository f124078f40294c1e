"""
Export to Localazy.

Uploads flattened content language by language, chunk by chunk, into
the ``directus.json`` file of the project.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from localazy_sync.core.errors import ErrorTracker
from localazy_sync.core.models import (
    LOCALAZY_FILE_NAME,
    KeyValueEntry,
    LocalazyProject,
    SyncSettings,
    TranslatableContent,
)
from localazy_sync.i18n.adapter import LanguageAdapter
from localazy_sync.localazy.throttle import ThrottledLocalazyApi
from localazy_sync.services.content import DEFAULT_CHUNK_SIZE, split_content_into_chunks
from localazy_sync.services.queue import AsyncBatchQueue

logger = logging.getLogger(__name__)


class ExportResult(BaseModel):
    exported_chunks: int = 0
    failed_chunks: int = 0
    nothing_to_export: bool = False

    @property
    def success(self) -> bool:
        return self.failed_chunks == 0


class ExportToLocalazyService:
    """
    Uploads TranslatableContent to a Localazy project.

    The source branch is uploaded under the Localazy form of the
    project's source language, every other branch under the Localazy
    form of its Directus code. Chunks upload as paced queue jobs; a
    failed chunk is tracked and the others still go out.

    Example:
        service = ExportToLocalazyService(api, adapter, tracker)
        result = await service.export_content(content, settings, project)
    """

    def __init__(
        self,
        api: ThrottledLocalazyApi,
        adapter: LanguageAdapter,
        error_tracker: ErrorTracker,
        delay_between: float = 0.15,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.api = api
        self.adapter = adapter
        self.error_tracker = error_tracker
        self.delay_between = delay_between
        self.chunk_size = chunk_size

    def _upload_jobs(self, project_id: str, language: str, content: KeyValueEntry) -> list:
        def upload(chunk: KeyValueEntry):
            async def job():
                return await self.api.import_json(project_id, LOCALAZY_FILE_NAME, language, chunk)
            return job

        return [upload(chunk) for chunk in split_content_into_chunks(content, self.chunk_size)]

    async def export_content(
        self,
        content: TranslatableContent,
        settings: SyncSettings,
        project: LocalazyProject,
    ) -> ExportResult:
        if not content.source_language:
            return ExportResult(nothing_to_export=True)

        source_language = self.adapter.map_directus_to_localazy_source_language(
            project.source_language, settings.source_language,
        )

        queue = AsyncBatchQueue()
        labels: list[str] = []

        source_jobs = self._upload_jobs(project.id, source_language, content.source_language)
        queue.add(source_jobs)
        labels.extend([source_language] * len(source_jobs))

        for directus_code, entry in content.other_languages.items():
            if not entry:
                continue
            language = self.adapter.to_localazy(directus_code)
            jobs = self._upload_jobs(project.id, language, entry)
            queue.add(jobs)
            labels.extend([language] * len(jobs))

        results = await queue.execute(delay_between=self.delay_between)

        result = ExportResult()
        for language, job_result in zip(labels, results):
            if job_result.error is None:
                result.exported_chunks += 1
                continue
            result.failed_chunks += 1
            self.error_tracker.track_localazy_error(
                job_result.error, "export", {"project": project.id, "language": language},
            )

        logger.info(
            f"Localazy: Uploaded {result.exported_chunks} chunks to {project.id}"
            + (f", {result.failed_chunks} failed" if result.failed_chunks else "")
        )
        return result
