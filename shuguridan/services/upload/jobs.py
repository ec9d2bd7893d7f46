from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Literal
from uuid import uuid4

from shuguridan.core.config import get_settings


logger = logging.getLogger(__name__)

JobStatus = Literal["pending", "processing", "completed", "failed"]
FileStatus = Literal["pending", "processing", "completed", "failed"]


@dataclass
class UploadFileEntry:
    filename: str
    status: FileStatus = "pending"
    document_id: str | None = None
    chunks_created: int | None = None
    total_tokens: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "status": self.status,
            "documentId": self.document_id,
            "chunksCreated": self.chunks_created,
            "totalTokens": self.total_tokens,
            "error": self.error,
        }


@dataclass
class UploadJob:
    id: str
    language: str
    version: str
    files: list[UploadFileEntry]
    created_at: float
    status: JobStatus = "pending"
    updated_at: float = 0.0

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def processed_files(self) -> int:
        return sum(1 for entry in self.files if entry.status in ("completed", "failed"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "language": self.language,
            "version": self.version,
            "status": self.status,
            "totalFiles": self.total_files,
            "processedFiles": self.processed_files,
            "files": [entry.to_dict() for entry in self.files],
        }


class JobManager:
    """Per-process registry of upload jobs.

    Jobs live in memory only and are dropped once they are older than the
    configured TTL. Expired jobs are purged lazily whenever the registry is
    touched, so no background sweeper is needed.
    """

    def __init__(
        self,
        *,
        ttl_s: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._jobs: dict[str, UploadJob] = {}
        self._ttl_s = ttl_s
        # Allow injecting time for deterministic expiry tests.
        self._clock = clock or time.monotonic

    def _ttl(self) -> int:
        if self._ttl_s is not None:
            return self._ttl_s
        return get_settings().upload_job_ttl_s

    def _purge_expired(self) -> None:
        cutoff = self._clock() - self._ttl()
        expired = [job_id for job_id, job in self._jobs.items() if job.created_at < cutoff]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.debug("upload_jobs_purged count=%s", len(expired))

    def create_job(self, language: str, version: str, filenames: list[str]) -> UploadJob:
        self._purge_expired()
        now = self._clock()
        job = UploadJob(
            id=str(uuid4()),
            language=language,
            version=version,
            files=[UploadFileEntry(filename=name) for name in filenames],
            created_at=now,
            updated_at=now,
        )
        self._jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> UploadJob | None:
        self._purge_expired()
        return self._jobs.get(job_id)

    def update_job_status(self, job_id: str, status: JobStatus) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        job.status = status
        job.updated_at = self._clock()

    def update_file_status(
        self,
        job_id: str,
        index: int,
        status: FileStatus,
        *,
        document_id: str | None = None,
        chunks_created: int | None = None,
        total_tokens: int | None = None,
        error: str | None = None,
    ) -> None:
        # Entries are addressed by position; one upload may repeat a filename.
        job = self._jobs.get(job_id)
        if job is None or not 0 <= index < len(job.files):
            return
        entry = job.files[index]
        entry.status = status
        if document_id is not None:
            entry.document_id = document_id
        if chunks_created is not None:
            entry.chunks_created = chunks_created
        if total_tokens is not None:
            entry.total_tokens = total_tokens
        if error is not None:
            entry.error = error
        job.updated_at = self._clock()
        self._settle(job, status)

    def fail_pending_files(self, job_id: str, error: str) -> None:
        """Mark every unfinished file failed so the job reaches a final state."""
        job = self._jobs.get(job_id)
        if job is None:
            return
        unfinished = [entry for entry in job.files if entry.status in ("pending", "processing")]
        if not unfinished:
            return
        for entry in unfinished:
            entry.status = "failed"
            entry.error = error
        logger.warning("upload_job_aborted job=%s unfinished=%s", job_id, len(unfinished))
        job.updated_at = self._clock()
        self._settle(job, "failed")

    @staticmethod
    def _settle(job: UploadJob, status: FileStatus) -> None:
        if status == "processing":
            job.status = "processing"
        elif job.processed_files == job.total_files:
            failed = sum(1 for item in job.files if item.status == "failed")
            job.status = "failed" if failed == job.total_files else "completed"

    def get_progress(self, job_id: str) -> dict[str, Any] | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        completed = sum(1 for entry in job.files if entry.status == "completed")
        failed = sum(1 for entry in job.files if entry.status == "failed")
        total = job.total_files
        progress = round((completed + failed) / total * 100) if total else 0
        return {
            "status": job.status,
            "progress": progress,
            "completed": completed,
            "failed": failed,
            "total": total,
            "files": [entry.to_dict() for entry in job.files],
        }

    def clear(self) -> None:
        self._jobs.clear()


_job_manager: JobManager | None = None


def get_job_manager() -> JobManager:
    # Share one registry per process so status polls see background progress.
    global _job_manager
    if _job_manager is None:
        _job_manager = JobManager()
    return _job_manager


def reset_job_manager() -> None:
    global _job_manager
    _job_manager = None
