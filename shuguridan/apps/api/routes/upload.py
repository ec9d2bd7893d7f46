from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from shuguridan.apps.api.deps import get_db, get_embedder, get_jobs
from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.apps.api.response import SuccessEnvelope, success_response
from shuguridan.core.config import get_settings
from shuguridan.core.errors import ProviderConfigError
from shuguridan.domain.versions import SELECTABLE_VERSIONS
from shuguridan.persistence.repos import spec_documents as spec_documents_repo
from shuguridan.providers.embedding.base import EmbeddingProvider
from shuguridan.services.upload.jobs import JobManager
from shuguridan.services.upload.parser import is_supported_file
from shuguridan.services.upload.processing import UploadedFile, process_upload_job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"], responses=DEFAULT_ERROR_RESPONSES)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": message})


def _form_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@router.post("", response_model=SuccessEnvelope[dict[str, Any]])
async def upload_files(
    request: Request,
    background_tasks: BackgroundTasks,
    embedder: EmbeddingProvider | None = Depends(get_embedder),
    jobs: JobManager = Depends(get_jobs),
) -> dict:
    form = await request.form()
    language = _form_text(form.get("language"))
    version = _form_text(form.get("version"))
    uploads: list[UploadFile] = [
        value
        for key, value in form.multi_items()
        if (key == "files" or key.startswith("file")) and isinstance(value, UploadFile)
    ]

    if not language:
        raise _bad_request("Language is required")
    if not version:
        raise _bad_request("Version is required")
    if version not in SELECTABLE_VERSIONS:
        raise _bad_request(f"Invalid version. Supported versions: {', '.join(SELECTABLE_VERSIONS)}")
    if not uploads:
        raise _bad_request("No files uploaded")

    supported = [upload for upload in uploads if is_supported_file(upload.filename or "")]
    skipped = [upload.filename or "" for upload in uploads if not is_supported_file(upload.filename or "")]
    if not supported:
        raise _bad_request("No supported files. Supported formats: .md, .txt, .pdf")
    if embedder is None:
        raise ProviderConfigError("No embedding provider configured: set OPENAI_API_KEY or EMBEDDING_PROVIDER.")

    max_bytes = get_settings().upload_max_file_bytes
    files: list[UploadedFile] = []
    for upload in supported:
        # The form is closed once the response is sent, so read bodies now.
        data = await upload.read()
        if len(data) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail={
                    "code": "PAYLOAD_TOO_LARGE",
                    "message": f"File too large: {upload.filename}",
                    "maxBytes": max_bytes,
                },
            )
        files.append(UploadedFile(filename=upload.filename or "", data=data))

    job = jobs.create_job(language, version, [item.filename for item in files])
    background_tasks.add_task(
        process_upload_job,
        job.id,
        files,
        version,
        embedder=embedder,
        jobs=jobs,
    )
    logger.info("upload_job_created job=%s version=%s files=%s skipped=%s", job.id, version, len(files), len(skipped))
    data = {"jobId": job.id, "filesCount": len(files), "skippedFiles": skipped}
    return success_response(request=request, data=data)


@router.get("/status/{job_id}", response_model=SuccessEnvelope[dict[str, Any]])
async def upload_status(
    job_id: str,
    request: Request,
    jobs: JobManager = Depends(get_jobs),
) -> dict:
    progress = jobs.get_progress(job_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return success_response(request=request, data=progress)


@router.get("/stats", response_model=SuccessEnvelope[dict[str, Any]])
async def upload_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict:
    counts = await spec_documents_repo.count_by_version(db)
    by_version = {version: counts.get(version, 0) for version in SELECTABLE_VERSIONS}
    return success_response(request=request, data={"total": sum(by_version.values()), "byVersion": by_version})
