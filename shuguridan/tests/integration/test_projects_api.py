from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from shuguridan.apps.api.deps import get_llm, get_retriever
from shuguridan.apps.api.main import create_app
from shuguridan.providers.llm.fake import FakeLLMProvider

_PROJECT = {"name": "Legacy engine", "sourceVersion": "cpp11", "targetVersion": "cpp17"}


@pytest.mark.asyncio
async def test_project_crud_round_trip() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        created = await client.post("/api/projects", json={**_PROJECT, "settings": {"team": "core"}})
        assert created.status_code == 201
        project = created.json()["data"]
        project_id = project["id"]
        assert project["settings"] == {"team": "core"}
        assert project["createdAt"]

        listed = await client.get("/api/projects")
        assert [item["id"] for item in listed.json()["data"]] == [project_id]

        updated = await client.put(f"/api/projects/{project_id}", json={"description": "engine port", "name": None})
        assert updated.status_code == 200
        assert updated.json()["data"]["description"] == "engine port"
        assert updated.json()["data"]["name"] == "Legacy engine"

        rejected = await client.put(f"/api/projects/{project_id}", json={"userId": "someone-else"})
        assert rejected.status_code == 400

        deleted = await client.delete(f"/api/projects/{project_id}")
        assert deleted.json()["data"] == {"id": project_id, "deleted": True}

        missing = await client.get(f"/api/projects/{project_id}")
        assert missing.status_code == 404
        assert missing.json()["error"] == {"code": "NOT_FOUND", "message": "Project not found"}


@pytest.mark.asyncio
async def test_projects_are_scoped_by_user_header() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        alice = await client.post("/api/projects", json=_PROJECT, headers={"X-User-Id": "alice"})
        project_id = alice.json()["data"]["id"]

        as_bob = await client.get(f"/api/projects/{project_id}", headers={"X-User-Id": "bob"})
        bob_list = await client.get("/api/projects", headers={"X-User-Id": "bob"})
        as_alice = await client.get(f"/api/projects/{project_id}", headers={"X-User-Id": "alice"})
        bob_delete = await client.delete(f"/api/projects/{project_id}", headers={"X-User-Id": "bob"})

    assert as_bob.status_code == 404
    assert bob_list.json()["data"] == []
    assert as_alice.status_code == 200
    assert bob_delete.status_code == 404


@pytest.mark.asyncio
async def test_create_project_rejects_bad_payloads() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        blank = await client.post("/api/projects", json={**_PROJECT, "name": ""})
        bad_version = await client.post("/api/projects", json={**_PROJECT, "targetVersion": "cpp42"})

    assert blank.status_code == 400
    assert bad_version.status_code == 400


@pytest.mark.asyncio
async def test_generate_attaches_document_and_exports_it() -> None:
    app = create_app()
    llm = FakeLLMProvider("# Migration\n\n- Replace `NULL` with `nullptr`")
    app.dependency_overrides[get_llm] = lambda: llm
    app.dependency_overrides[get_retriever] = lambda: None

    body = {
        "sourceVersion": "cpp11",
        "targetVersion": "cpp14",
        "docType": "migration_guide",
        "options": {"targetLevel": "intermediate", "outputLanguage": "en"},
    }
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        project = await client.post("/api/projects", json=_PROJECT)
        project_id = project.json()["data"]["id"]

        generated = await client.post("/api/generate", json={**body, "projectId": project_id})
        assert generated.status_code == 200
        doc = generated.json()["data"]
        assert doc["docType"] == "migration_guide"
        assert doc["cached"] is False
        assert doc["ragSourcesUsed"] == 0

        documents = await client.get(f"/api/projects/{project_id}/documents")
        listed = documents.json()["data"]
        assert [item["id"] for item in listed] == [doc["id"]]
        assert listed[0]["metadata"]["model"] == "fake-model"

        exported = await client.post(
            "/api/export/document", json={"documentId": doc["id"], "format": "html", "theme": "dark"}
        )
        assert exported.status_code == 200
        export = exported.json()["data"]
        assert export["filename"] == "migration_guide_cpp11_to_cpp14.html"
        assert "<code>nullptr</code>" in export["content"]

        repeated = await client.post("/api/generate", json=body)
        assert repeated.json()["data"]["cached"] is True
        assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_generate_validates_versions_and_project() -> None:
    app = create_app()
    app.dependency_overrides[get_llm] = lambda: FakeLLMProvider()
    app.dependency_overrides[get_retriever] = lambda: None
    body = {
        "sourceVersion": "cpp17",
        "targetVersion": "cpp11",
        "docType": "release_notes",
        "options": {"targetLevel": "beginner", "outputLanguage": "ko"},
    }
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        backwards = await client.post("/api/generate", json=body)
        unknown_project = await client.post(
            "/api/generate",
            json={**body, "sourceVersion": "cpp11", "targetVersion": "cpp14", "projectId": "missing"},
        )

    assert backwards.status_code == 400
    assert backwards.json()["error"]["code"] == "INVALID_VERSION_ORDER"
    assert unknown_project.status_code == 404


@pytest.mark.asyncio
async def test_generate_without_llm_is_unconfigured() -> None:
    body = {
        "sourceVersion": "cpp11",
        "targetVersion": "cpp14",
        "docType": "test_points",
        "options": {"targetLevel": "senior", "outputLanguage": "en"},
    }
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        response = await client.post("/api/generate", json=body)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "SERVICE_UNCONFIGURED"


@pytest.mark.asyncio
async def test_modernize_returns_code_without_persisting() -> None:
    app = create_app()
    app.dependency_overrides[get_llm] = lambda: FakeLLMProvider("auto p = nullptr;")
    app.dependency_overrides[get_retriever] = lambda: None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            "/api/generate/modernize",
            json={"sourceVersion": "cpp11", "targetVersion": "cpp17", "code": "int* p = NULL;"},
        )
        export = await client.post(
            "/api/export/document", json={"documentId": response.json()["data"]["id"], "format": "markdown"}
        )

    assert response.json()["data"]["modernizedCode"] == "auto p = nullptr;"
    assert export.status_code == 404
