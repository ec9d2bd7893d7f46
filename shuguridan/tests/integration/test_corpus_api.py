from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from shuguridan.apps.api.deps import get_embedder
from shuguridan.apps.api.main import create_app
from shuguridan.core.config import get_settings
from shuguridan.providers.embedding.local import LocalEmbeddingProvider


def _app_with_embedder():
    app = create_app()
    app.dependency_overrides[get_embedder] = lambda: LocalEmbeddingProvider()
    return app


@pytest.mark.asyncio
async def test_ingest_batch_stats_urls_and_delete() -> None:
    documents = [
        {
            "versionId": "cpp17",
            "title": "std::optional",
            "content": "std::optional represents an optional value.",
            "metadata": {"category": "library", "url": "https://example.test/optional"},
        },
        {"versionId": "cpp17", "title": "if constexpr", "content": "Compile-time branching."},
        {"versionId": "cpp20", "title": "concepts", "content": "Named requirements on templates."},
    ]
    async with AsyncClient(transport=ASGITransport(app=_app_with_embedder()), base_url="http://test") as client:
        single = await client.post(
            "/api/ingest", json={"versionId": "cpp14", "title": "make_unique", "content": "std::make_unique"}
        )
        batch = await client.post("/api/ingest/batch", json={"documents": documents})
        stats_all = await client.get("/api/ingest/stats")
        stats_17 = await client.get("/api/ingest/stats", params={"versionId": "cpp17"})
        urls = await client.get("/api/ingest/urls")
        deleted = await client.delete("/api/ingest/cpp17")
        invalid = await client.delete("/api/ingest/cpp99")
        upload_stats = await client.get("/api/upload/stats")

    assert single.json()["data"]["chunksCreated"] == 1
    batch_data = batch.json()["data"]
    assert batch_data["totalProcessed"] == 3
    assert batch_data["successful"] == 3
    assert batch_data["results"]["failed"] == []
    assert stats_all.json()["data"] == {"versionId": "all", "documentCount": 4}
    assert stats_17.json()["data"] == {"versionId": "cpp17", "documentCount": 2}
    assert urls.json()["data"] == {"urls": ["https://example.test/optional"], "count": 1}
    assert deleted.json()["data"] == {"versionId": "cpp17", "deletedCount": 2}
    assert invalid.status_code == 400
    assert invalid.json()["error"]["code"] == "INVALID_VERSION"
    assert upload_stats.json()["data"]["byVersion"] == {
        "cpp11": 0,
        "cpp14": 1,
        "cpp17": 0,
        "cpp20": 1,
        "cpp23": 0,
        "cpp26": 0,
    }
    assert upload_stats.json()["data"]["total"] == 2


@pytest.mark.asyncio
async def test_ingest_without_embedder_is_unconfigured_but_stats_work() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        ingest = await client.post("/api/ingest", json={"versionId": "cpp17", "title": "t", "content": "c"})
        stats = await client.get("/api/ingest/stats")
        empty_batch = await client.post("/api/ingest/batch", json={"documents": []})

    assert ingest.status_code == 503
    assert stats.json()["data"]["documentCount"] == 0
    assert empty_batch.status_code == 400


@pytest.mark.asyncio
async def test_upload_processes_files_in_background() -> None:
    files = [
        ("files", ("lambdas.md", b"# Lambdas\n\nGeneric lambdas.", "text/markdown")),
        ("files", ("notes.txt", b"plain notes", "text/plain")),
        ("files", ("diagram.png", b"\x89PNG", "image/png")),
    ]
    async with AsyncClient(transport=ASGITransport(app=_app_with_embedder()), base_url="http://test") as client:
        created = await client.post("/api/upload", data={"language": "cpp", "version": "cpp14"}, files=files)
        assert created.status_code == 200
        job = created.json()["data"]
        assert job["filesCount"] == 2
        assert job["skippedFiles"] == ["diagram.png"]

        status = await client.get(f"/api/upload/status/{job['jobId']}")
        stats = await client.get("/api/upload/stats")

    progress = status.json()["data"]
    assert progress["status"] == "completed"
    assert progress["progress"] == 100
    assert [entry["status"] for entry in progress["files"]] == ["completed", "completed"]
    assert stats.json()["data"]["byVersion"]["cpp14"] == 2


@pytest.mark.asyncio
async def test_upload_validation_messages() -> None:
    md = [("files", ("a.md", b"text", "text/markdown"))]
    async with AsyncClient(transport=ASGITransport(app=_app_with_embedder()), base_url="http://test") as client:
        no_language = await client.post("/api/upload", data={"version": "cpp17"}, files=md)
        no_version = await client.post("/api/upload", data={"language": "cpp"}, files=md)
        bad_version = await client.post("/api/upload", data={"language": "cpp", "version": "cpp98"}, files=md)
        no_files = await client.post("/api/upload", data={"language": "cpp", "version": "cpp17"})
        unsupported = await client.post(
            "/api/upload",
            data={"language": "cpp", "version": "cpp17"},
            files=[("files", ("a.exe", b"MZ", "application/octet-stream"))],
        )
        unknown_job = await client.get("/api/upload/status/missing")

    assert no_language.json()["error"]["message"] == "Language is required"
    assert no_version.json()["error"]["message"] == "Version is required"
    assert bad_version.json()["error"]["message"].startswith("Invalid version. Supported versions: cpp11")
    assert no_files.json()["error"]["message"] == "No files uploaded"
    assert unsupported.json()["error"]["message"] == "No supported files. Supported formats: .md, .txt, .pdf"
    assert {r.status_code for r in (no_language, no_version, bad_version, no_files, unsupported)} == {400}
    assert unknown_job.status_code == 404
    assert unknown_job.json()["error"]["message"] == "Job not found"


@pytest.mark.asyncio
async def test_upload_limits_and_missing_embedder(monkeypatch) -> None:
    md = [("files", ("a.md", b"0123456789", "text/markdown"))]
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        unconfigured = await client.post("/api/upload", data={"language": "cpp", "version": "cpp17"}, files=md)

    monkeypatch.setenv("UPLOAD_MAX_FILE_BYTES", "5")
    get_settings.cache_clear()
    async with AsyncClient(transport=ASGITransport(app=_app_with_embedder()), base_url="http://test") as client:
        too_large = await client.post("/api/upload", data={"language": "cpp", "version": "cpp17"}, files=md)

    assert unconfigured.status_code == 503
    assert too_large.status_code == 413
    assert too_large.json()["error"]["details"] == {"maxBytes": 5}
