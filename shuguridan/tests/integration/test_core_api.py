from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from shuguridan.apps.api.main import create_app


@pytest.mark.asyncio
async def test_root_banner_is_not_enveloped() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        response = await client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "data" not in body


@pytest.mark.asyncio
async def test_health_envelope_and_request_id() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        response = await client.get("/api/health", headers={"X-Request-Id": "req-123"})
        generated = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"data": {"status": "ok"}, "meta": {"request_id": "req-123", "api_version": "v1"}}
    assert response.headers["X-Request-Id"] == "req-123"
    assert generated.headers["X-Request-Id"] == generated.json()["meta"]["request_id"]


@pytest.mark.asyncio
async def test_versions_lists_selectable_versions_in_order() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        response = await client.get("/api/versions")

    versions = response.json()["data"]
    assert [version["id"] for version in versions] == ["cpp11", "cpp14", "cpp17", "cpp20", "cpp23", "cpp26"]
    assert versions[0]["standardDoc"]
    assert versions[2]["year"] == 2017


@pytest.mark.asyncio
async def test_unknown_api_route_uses_error_envelope() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        api_missing = await client.get("/api/nope")
        bare_missing = await client.get("/nope")

    assert api_missing.status_code == 404
    assert api_missing.json()["error"]["code"] == "NOT_FOUND"
    assert api_missing.json()["meta"]["api_version"] == "v1"
    assert bare_missing.status_code == 404
    assert bare_missing.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_validation_failures_return_400() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        response = await client.post("/api/diff", json={"sourceVersion": "cpp99", "targetVersion": "cpp17"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["errors"][0]["loc"] == ["body", "sourceVersion"]


@pytest.mark.asyncio
async def test_diff_endpoints() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        pairs = await client.get("/api/diff/pairs")
        chained = await client.post("/api/diff", json={"sourceVersion": "cpp11", "targetVersion": "cpp17"})
        filtered = await client.post(
            "/api/diff",
            json={"sourceVersion": "cpp11", "targetVersion": "cpp14", "categories": ["newFeatures"]},
        )
        quick = await client.get("/api/diff/cpp14/cpp17")
        backwards = await client.get("/api/diff/cpp17/cpp14")
        unknown = await client.get("/api/diff/cpp17/cpp99")
        no_data = await client.get("/api/diff/cpp20/cpp23")

    assert pairs.json()["data"] == [
        {"source": "cpp11", "target": "cpp14"},
        {"source": "cpp14", "target": "cpp17"},
    ]
    chained_data = chained.json()["data"]
    assert chained_data["totalChanges"] == 34
    assert "durationMs" in chained_data["meta"]

    filtered_diff = filtered.json()["data"]["diff"]
    assert filtered_diff["newFeatures"]
    assert filtered_diff["deprecated"] == []

    assert quick.json()["data"]["totalChanges"] == 21
    assert backwards.status_code == 400
    assert backwards.json()["error"]["code"] == "INVALID_VERSION_ORDER"
    assert unknown.json()["error"]["code"] == "INVALID_VERSION"
    assert no_data.status_code == 404
    assert no_data.json()["error"]["details"] == {"sourceVersion": "cpp20", "targetVersion": "cpp23"}


@pytest.mark.asyncio
async def test_mindmap_endpoints() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        data = await client.post(
            "/api/mindmap/data", json={"sourceVersion": "cpp14", "targetVersion": "cpp17", "expandLevel": 1}
        )
        pairs = await client.get("/api/mindmap/pairs")
        invalid = await client.post(
            "/api/mindmap/data", json={"sourceVersion": "cpp14", "targetVersion": "cpp17", "expandLevel": 9}
        )

    assert data.status_code == 200
    assert data.json()["data"]["nodes"]
    assert pairs.status_code == 200
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_export_formats_and_diff_export() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        formats = await client.get("/api/export/formats")
        exported = await client.post(
            "/api/export/diff",
            json={"sourceVersion": "cpp11", "targetVersion": "cpp14", "format": "markdown"},
        )
        missing = await client.post("/api/export/document", json={"documentId": "missing", "format": "html"})

    assert [item["id"] for item in formats.json()["data"]["formats"]] == ["markdown", "html", "json"]
    payload = exported.json()["data"]
    assert payload["filename"] == "diff_cpp11_to_cpp14.md"
    assert payload["mimeType"] == "text/markdown"
    assert payload["size"] > 0
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Document not found"
