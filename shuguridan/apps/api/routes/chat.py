from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Literal

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import Field

from shuguridan.apps.api.deps import get_llm, get_retriever
from shuguridan.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from shuguridan.core.errors import ShuguridanError
from shuguridan.domain.schemas import CamelModel
from shuguridan.domain.versions import SelectableVersion
from shuguridan.providers.llm.base import LLMProvider
from shuguridan.services.prompts import ResponseMode, build_chat_system_prompt, with_reference_documents
from shuguridan.services.rag.retriever import DocumentRetriever

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"], responses=DEFAULT_ERROR_RESPONSES)

DEFAULT_CHAT_RAG_LIMIT = 5


class ChatMessageBody(CamelModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class ChatRequest(CamelModel):
    messages: list[ChatMessageBody]
    source_version: SelectableVersion
    target_version: SelectableVersion
    use_rag: bool = True
    rag_limit: int = Field(default=DEFAULT_CHAT_RAG_LIMIT, ge=1, le=10)
    response_mode: ResponseMode = "detailed"


def _sse_message(payload: dict) -> str:
    # SSE framing invariants: event name must be "message" and data must be a compact JSON line.
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"event: message\ndata: {data}\n\n"


async def _rag_context(retriever: DocumentRetriever, payload: ChatRequest) -> list[str]:
    last_user = next((message for message in reversed(payload.messages) if message.role == "user"), None)
    if last_user is None:
        return []
    results = await retriever.retrieve_multi_version(
        last_user.content,
        [payload.source_version, payload.target_version],
        limit=payload.rag_limit,
    )
    seen: set[str] = set()
    unique = []
    for docs in results.values():
        for doc in docs:
            if doc.id in seen:
                continue
            seen.add(doc.id)
            unique.append(doc)
    return [
        f"[{doc.title}] (relevance: {round(doc.similarity * 100)}%)\n{doc.content}"
        for doc in unique[: payload.rag_limit]
    ]


@router.post("", response_class=StreamingResponse)
async def chat(
    payload: ChatRequest,
    request: Request,
    llm: LLMProvider = Depends(get_llm),
    retriever: DocumentRetriever | None = Depends(get_retriever),
) -> StreamingResponse:
    context: list[str] = []
    if payload.use_rag and retriever is not None:
        try:
            context = await _rag_context(retriever, payload)
        except ShuguridanError as exc:
            # Chat still answers without reference documents.
            logger.warning("chat_rag_failed error=%s", exc)

    system_prompt = with_reference_documents(
        build_chat_system_prompt(payload.source_version, payload.target_version, payload.response_mode),
        context,
    )
    messages = [{"role": message.role, "content": message.content} for message in payload.messages]
    logger.info(
        "chat_request source=%s target=%s messages=%s rag_sources=%s",
        payload.source_version,
        payload.target_version,
        len(messages),
        len(context),
    )

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for delta in llm.stream(messages, system=system_prompt):
                if await request.is_disconnected():
                    # Stop streaming immediately when the client disconnects.
                    logger.info("chat_client_disconnected")
                    return
                if delta:
                    yield _sse_message({"type": "content", "content": delta})
        except ShuguridanError as exc:
            logger.warning("chat_stream_failed error=%s", exc)
            yield _sse_message({"type": "error", "error": str(exc)})
            return
        except Exception:
            logger.exception("chat_stream_crashed")
            yield _sse_message({"type": "error", "error": "Internal server error"})
            return
        yield _sse_message({"type": "done", "ragSourcesUsed": len(context)})

    headers = {
        "Cache-Control": "no-cache",
        "Content-Type": "text/event-stream",
        "Connection": "keep-alive",
    }
    return StreamingResponse(event_stream(), headers=headers, media_type="text/event-stream")
