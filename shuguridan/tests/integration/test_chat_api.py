from __future__ import annotations

import json

import pytest
from httpx import ASGITransport, AsyncClient

from shuguridan.apps.api.deps import get_llm, get_retriever
from shuguridan.apps.api.main import create_app
from shuguridan.providers.llm.fake import FakeLLMProvider
from shuguridan.tests.utils.fakes import FailingStreamLLM, FakeRetriever, make_document

_BODY = {
    "messages": [{"role": "user", "content": "How do I replace auto_ptr?"}],
    "sourceVersion": "cpp11",
    "targetVersion": "cpp17",
}


def _events(text: str) -> list[dict]:
    frames = [frame for frame in text.split("\n\n") if frame]
    events = []
    for frame in frames:
        event_line, data_line = frame.split("\n")
        assert event_line == "event: message"
        events.append(json.loads(data_line.removeprefix("data: ")))
    return events


@pytest.mark.asyncio
async def test_chat_streams_content_then_done() -> None:
    llm = FakeLLMProvider("Use unique_ptr instead.")
    retriever = FakeRetriever(
        [make_document("a", "cpp11", title="auto_ptr"), make_document("b", "cpp17", title="unique_ptr")]
    )
    app = create_app()
    app.dependency_overrides[get_llm] = lambda: llm
    app.dependency_overrides[get_retriever] = lambda: retriever

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/chat", json={**_BODY, "ragLimit": 3})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response.text)
    assert [event["type"] for event in events] == ["content", "content", "content", "done"]
    assert "".join(event["content"] for event in events[:-1]) == "Use unique_ptr instead. "
    assert events[-1] == {"type": "done", "ragSourcesUsed": 2}

    system = llm.calls[0]["system"]
    assert "from CPP11 to CPP17" in system
    assert "[auto_ptr] (relevance: 80%)" in system
    assert retriever.queries[0] == ("How do I replace auto_ptr?", "cpp11", 3)


@pytest.mark.asyncio
async def test_chat_without_rag_and_with_failing_retriever() -> None:
    llm = FakeLLMProvider("ok")
    app = create_app()
    app.dependency_overrides[get_llm] = lambda: llm
    app.dependency_overrides[get_retriever] = lambda: FakeRetriever(fail=True)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        failed_rag = await client.post("/api/chat", json=_BODY)
        no_rag = await client.post("/api/chat", json={**_BODY, "useRag": False, "responseMode": "short"})

    assert _events(failed_rag.text)[-1] == {"type": "done", "ragSourcesUsed": 0}
    assert _events(no_rag.text)[-1] == {"type": "done", "ragSourcesUsed": 0}
    assert "concise" in llm.calls[1]["system"]


@pytest.mark.asyncio
async def test_chat_stream_failure_emits_error_frame() -> None:
    app = create_app()
    app.dependency_overrides[get_llm] = lambda: FailingStreamLLM()
    app.dependency_overrides[get_retriever] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/api/chat", json=_BODY)

    assert response.status_code == 200
    assert _events(response.text) == [
        {"type": "content", "content": "partial "},
        {"type": "error", "error": "LLM stream interrupted."},
    ]


@pytest.mark.asyncio
async def test_chat_requires_llm_and_valid_body() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        unconfigured = await client.post("/api/chat", json=_BODY)

    app = create_app()
    app.dependency_overrides[get_llm] = lambda: FakeLLMProvider()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        invalid = await client.post("/api/chat", json={**_BODY, "sourceVersion": "cpp98"})

    assert unconfigured.status_code == 503
    assert unconfigured.json()["error"]["code"] == "SERVICE_UNCONFIGURED"
    assert invalid.status_code == 400
