# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cms_relations.models.base import Base
from cms_relations.models.content import ContentEntry, ContentType
from cms_relations.models.relation import RelationDefinition


def _get_test_database_url() -> str:
    """Return the test database URL from env, falling back to in-memory SQLite."""
    return os.environ.get(
        "TEST_DATABASE_URL",
        "sqlite+aiosqlite:///:memory:",
    )


# Settings are read lazily; the app module needs a database URL at import.
os.environ.setdefault("DATABASE_URL", _get_test_database_url())


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on pysqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Create an async engine for the test database."""
    url = _get_test_database_url()
    engine = create_async_engine(url, echo=False)
    if url.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(
    async_engine: AsyncEngine,
) -> AsyncIterator[AsyncSession]:
    """Provide a database session that rolls back after each test."""
    session_factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """HTTP client bound to the app, sharing the test session."""
    from cms_relations.api.relations import limiter
    from cms_relations.db.session import get_db
    from cms_relations.main import app

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    limiter.enabled = True
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factory helpers for creating model instances in tests
# ---------------------------------------------------------------------------


def make_content_type(
    *,
    name: str = "article",
    display_name: str | None = None,
) -> dict[str, object]:
    """Return kwargs suitable for constructing a ContentType model instance."""
    return {
        "name": name,
        "display_name": display_name or name.replace("_", " ").title(),
    }


def make_entry(
    *,
    content_type_id: int,
    title: str = "Test entry",
    slug: str | None = None,
    status: str = "published",
) -> dict[str, object]:
    """Return kwargs suitable for constructing a ContentEntry model instance."""
    return {
        "content_type_id": content_type_id,
        "title": title,
        "slug": slug or f"entry-{uuid4().hex[:12]}",
        "status": status,
        "data": {},
    }


def make_definition(
    *,
    source_content_type_id: int,
    target_content_type_id: int,
    name: str = "article_tags",
    display_name: str | None = None,
    source_field_name: str | None = None,
    target_field_name: str | None = None,
    relation_type: str = "many_to_many",
    is_bidirectional: bool = False,
    is_required: bool = False,
    on_source_delete: str = "cascade",
    on_target_delete: str = "set_null",
    min_relations: int = 0,
    max_relations: int | None = None,
    sort_order: int = 0,
    is_active: bool = True,
) -> dict[str, object]:
    """Return kwargs suitable for constructing a RelationDefinition model instance.

    Every column is explicit so unflushed instances behave like stored ones.
    """
    return {
        "id": uuid4(),
        "name": name,
        "display_name": display_name or name.replace("_", " ").title(),
        "description": None,
        "source_content_type_id": source_content_type_id,
        "source_field_name": source_field_name or name,
        "target_content_type_id": target_content_type_id,
        "target_field_name": target_field_name,
        "relation_type": relation_type,
        "is_bidirectional": is_bidirectional,
        "is_required": is_required,
        "on_source_delete": on_source_delete,
        "on_target_delete": on_target_delete,
        "min_relations": min_relations,
        "max_relations": max_relations,
        "metadata_": {},
        "sort_order": sort_order,
        "is_active": is_active,
    }


async def create_content_type(session: AsyncSession, name: str) -> ContentType:
    content_type = ContentType(**make_content_type(name=name))
    session.add(content_type)
    await session.flush()
    return content_type


async def create_entries(
    session: AsyncSession, content_type: ContentType, count: int, *, prefix: str | None = None
) -> list[ContentEntry]:
    prefix = prefix or content_type.name
    entries = [
        ContentEntry(
            **make_entry(
                content_type_id=content_type.id,
                title=f"{prefix.title()} {i}",
                slug=f"{prefix}-{i}",
            )
        )
        for i in range(1, count + 1)
    ]
    session.add_all(entries)
    await session.flush()
    return entries


async def create_definition(session: AsyncSession, **kwargs: Any) -> RelationDefinition:
    definition = RelationDefinition(**make_definition(**kwargs))
    session.add(definition)
    await session.flush()
    return definition
