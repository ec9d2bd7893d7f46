from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shuguridan.apps.api.deps import close_providers
from shuguridan.apps.api.errors import (
    compiler_exception_handler,
    database_exception_handler,
    diff_path_exception_handler,
    http_exception_handler,
    provider_config_exception_handler,
    service_exception_handler,
    starlette_http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from shuguridan.apps.api.response import API_PREFIX, API_VERSION
from shuguridan.apps.api.routes.chat import router as chat_router
from shuguridan.apps.api.routes.compile import router as compile_router
from shuguridan.apps.api.routes.diff import router as diff_router
from shuguridan.apps.api.routes.export import router as export_router
from shuguridan.apps.api.routes.generate import router as generate_router
from shuguridan.apps.api.routes.health import router as health_router
from shuguridan.apps.api.routes.ingest import router as ingest_router
from shuguridan.apps.api.routes.mindmap import router as mindmap_router
from shuguridan.apps.api.routes.projects import router as projects_router
from shuguridan.apps.api.routes.testgen import router as testgen_router
from shuguridan.apps.api.routes.upload import router as upload_router
from shuguridan.apps.api.routes.versions import router as versions_router
from shuguridan.core.config import get_settings
from shuguridan.core.errors import (
    CompilerError,
    DiffPathNotFoundError,
    ProviderConfigError,
    ShuguridanError,
)
from shuguridan.core.logging import configure_logging


logger = logging.getLogger(__name__)


def _cors_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await close_providers()

    app = FastAPI(title="Shuguridan API", version=settings.app_version, lifespan=lifespan)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.info(
            "request method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(ProviderConfigError)
    async def _provider_config_exception_handler(request: Request, exc: ProviderConfigError):
        return await provider_config_exception_handler(request, exc)

    @app.exception_handler(CompilerError)
    async def _compiler_exception_handler(request: Request, exc: CompilerError):
        return await compiler_exception_handler(request, exc)

    @app.exception_handler(DiffPathNotFoundError)
    async def _diff_path_exception_handler(request: Request, exc: DiffPathNotFoundError):
        return await diff_path_exception_handler(request, exc)

    # Handlers resolve by MRO, so the specific provider errors above win over this one.
    @app.exception_handler(ShuguridanError)
    async def _service_exception_handler(request: Request, exc: ShuguridanError):
        return await service_exception_handler(request, exc)

    @app.exception_handler(SQLAlchemyError)
    async def _database_exception_handler(request: Request, exc: SQLAlchemyError):
        return await database_exception_handler(request, exc)

    for router in (
        health_router,
        versions_router,
        diff_router,
        mindmap_router,
        generate_router,
        projects_router,
        export_router,
        upload_router,
        ingest_router,
        chat_router,
        compile_router,
        testgen_router,
    ):
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        return {"name": settings.app_name, "version": settings.app_version, "status": "ok"}

    def custom_openapi() -> dict:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title="Shuguridan API",
            version=settings.app_version,
            routes=app.routes,
        )
        schema["info"]["x-api-version"] = API_VERSION
        schema["servers"] = [{"url": "http://localhost:8000"}]
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
