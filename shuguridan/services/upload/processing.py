from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shuguridan.core.errors import ShuguridanError
from shuguridan.persistence.db import get_session
from shuguridan.providers.embedding.base import EmbeddingProvider
from shuguridan.services.rag.processor import DocumentProcessor, IngestDocumentInput
from shuguridan.services.upload.jobs import JobManager
from shuguridan.services.upload.parser import parse_file, title_from_filename


logger = logging.getLogger(__name__)

UPLOAD_METADATA = {"category": "language", "section": "Uploaded Document"}


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    data: bytes


async def process_upload_job(
    job_id: str,
    files: list[UploadedFile],
    version_id: str,
    *,
    embedder: EmbeddingProvider,
    jobs: JobManager,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] = get_session,
) -> None:
    """Parse and ingest uploaded files one at a time, recording per-file outcomes.

    Runs after the HTTP response has been sent, so it owns its database
    session. A failing file is marked failed and the remaining files continue.
    """
    if jobs.get_job(job_id) is None:
        return
    jobs.update_job_status(job_id, "processing")

    try:
        async with session_factory() as session:
            processor = DocumentProcessor(session, embedder)
            for index, upload in enumerate(files):
                await _process_file(job_id, index, upload, version_id, processor=processor, jobs=jobs)
    finally:
        # Files never reached (session setup failed, task cancelled) still end the job.
        jobs.fail_pending_files(job_id, "Upload processing aborted")

    progress = jobs.get_progress(job_id)
    if progress is not None:
        logger.info(
            "upload_job_finished job=%s status=%s completed=%s failed=%s",
            job_id,
            progress["status"],
            progress["completed"],
            progress["failed"],
        )


async def _process_file(
    job_id: str,
    index: int,
    upload: UploadedFile,
    version_id: str,
    *,
    processor: DocumentProcessor,
    jobs: JobManager,
) -> None:
    jobs.update_file_status(job_id, index, "processing")
    try:
        parsed = parse_file(upload.filename, upload.data)
        result = await processor.ingest_document(
            IngestDocumentInput(
                version_id=version_id,
                title=title_from_filename(upload.filename),
                content=parsed.content,
                metadata=dict(UPLOAD_METADATA),
            )
        )
    except Exception as exc:  # noqa: BLE001 - one bad file must not stop the rest of the job
        logger.warning(
            "upload_file_failed job=%s file=%s error=%s",
            job_id,
            upload.filename,
            type(exc).__name__,
            exc_info=not isinstance(exc, (ShuguridanError, SQLAlchemyError)),
        )
        jobs.update_file_status(job_id, index, "failed", error=str(exc) or type(exc).__name__)
        return
    jobs.update_file_status(
        job_id,
        index,
        "completed",
        document_id=result.document_id,
        chunks_created=result.chunks_created,
        total_tokens=result.total_tokens,
    )
