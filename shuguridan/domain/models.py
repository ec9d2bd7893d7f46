from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from shuguridan.core.config import EMBED_DIM


# JSONB on Postgres; plain JSON keeps the models usable on SQLite test databases.
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class CppVersionRow(Base):
    __tablename__ = "cpp_versions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    year: Mapped[int] = mapped_column(Integer)
    standard_doc: Mapped[str | None] = mapped_column(String, nullable=True)
    features: Mapped[list[str]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    # Owner forwarded by the upstream identity layer; NULL for unscoped callers.
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_version: Mapped[str | None] = mapped_column(String, nullable=True)
    target_version: Mapped[str | None] = mapped_column(String, nullable=True)
    settings: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SpecDocument(Base):
    __tablename__ = "spec_documents"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    version_id: Mapped[str] = mapped_column(String, ForeignKey("cpp_versions.id"), index=True)
    title: Mapped[str] = mapped_column(Text)
    content: Mapped[str] = mapped_column(Text)
    # Keep vector dimension aligned with embedding generation and retrieval.
    embedding: Mapped[list[float] | None] = mapped_column(Vector(EMBED_DIM), nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class DiffResult(Base):
    __tablename__ = "diff_results"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    project_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    source_version: Mapped[str] = mapped_column(String)
    target_version: Mapped[str] = mapped_column(String)
    diff_data: Mapped[dict[str, Any]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GeneratedDoc(Base):
    __tablename__ = "generated_docs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    project_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    diff_result_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("diff_results.id", ondelete="SET NULL"), nullable=True
    )
    doc_type: Mapped[str] = mapped_column(String)
    source_version: Mapped[str] = mapped_column(String)
    target_version: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    format: Mapped[str] = mapped_column(String, default="markdown")
    options: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LlmCacheEntry(Base):
    __tablename__ = "llm_cache"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    prompt_hash: Mapped[str] = mapped_column(String(64), unique=True)
    response: Mapped[str] = mapped_column(Text)
    model: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


Index("ix_projects_updated_at", Project.updated_at.desc())
Index("ix_generated_docs_project_created_at", GeneratedDoc.project_id, GeneratedDoc.created_at.desc())
Index("ix_llm_cache_expires_at", LlmCacheEntry.expires_at)
