# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from collections.abc import Mapping, Sequence
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.errors import (
    ConcurrentEditError,
    ConstraintViolationError,
    NotFoundError,
    StorageError,
)
from cms_relations.models.content import ContentEntry, ContentType
from cms_relations.models.relation import RelationDefinition
from cms_relations.services.batch import BatchCommitCoordinator
from cms_relations.services.constraints import ViolationCode
from cms_relations.services.relations import RelationData, RelationStore, ReplaceResult
from tests.conftest import create_content_type, create_definition, create_entries


class FlakyRelationStore(RelationStore):
    """Fails every write for one definition."""

    def __init__(self, session: AsyncSession, failing_definition_id: UUID) -> None:
        super().__init__(session)
        self.failing_definition_id = failing_definition_id

    async def replace_for_source(
        self,
        definition_id: UUID,
        source_entry_id: int,
        ordered_target_ids: Sequence[int],
        metadata_by_target: Mapping[int, RelationData] | None = None,
    ) -> ReplaceResult:
        if definition_id == self.failing_definition_id:
            raise StorageError("connection reset")
        return await super().replace_for_source(
            definition_id, source_entry_id, ordered_target_ids, metadata_by_target
        )


async def _article_with_fields(
    db_session: AsyncSession,
) -> tuple[ContentEntry, RelationDefinition, RelationDefinition, ContentType, ContentType]:
    article = await create_content_type(db_session, "article")
    tag = await create_content_type(db_session, "tag")
    user = await create_content_type(db_session, "user")
    tags = await create_definition(
        db_session,
        source_content_type_id=article.id,
        target_content_type_id=tag.id,
        source_field_name="tags",
        max_relations=5,
        sort_order=0,
    )
    authors = await create_definition(
        db_session,
        name="article_authors",
        source_content_type_id=article.id,
        target_content_type_id=user.id,
        source_field_name="authors",
        max_relations=1,
        sort_order=1,
    )
    (a1,) = await create_entries(db_session, article, 1)
    return a1, tags, authors, tag, user


async def _targets(store: RelationStore, definition_id: UUID, entry_id: int) -> list[int]:
    return [r.target_entry_id for r in await store.list_by_source(definition_id, entry_id)]


class TestCommitAll:
    async def test_max_relations_across_commits(self, db_session: AsyncSession) -> None:
        a1, tags, _authors, tag, _user = await _article_with_fields(db_session)
        tag_entries = await create_entries(db_session, tag, 6)
        store = RelationStore(db_session)
        coordinator = BatchCommitCoordinator(store)

        edit = await coordinator.open(a1.id)
        first_five = [t.id for t in tag_entries[:5]]
        coordinator.stage(edit, "tags", first_five)
        result = await coordinator.commit_all(edit)

        assert result.results["tags"].added == first_five
        assert edit.snapshot["tags"].target_ids == tuple(first_five)
        assert not edit.is_dirty

        coordinator.stage(edit, "tags", first_five + [tag_entries[5].id])
        with pytest.raises(ConstraintViolationError) as exc_info:
            await coordinator.commit_all(edit)

        (violation,) = exc_info.value.violations
        assert violation.code is ViolationCode.MAX_RELATIONS_EXCEEDED
        assert violation.limit == 5
        assert violation.field == "tags"
        assert await _targets(store, tags.id, a1.id) == first_five
        assert edit.is_dirty

    async def test_invalid_field_blocks_every_field(self, db_session: AsyncSession) -> None:
        a1, tags, authors, tag, user = await _article_with_fields(db_session)
        t1, t2 = await create_entries(db_session, tag, 2)
        u1, u2 = await create_entries(db_session, user, 2)
        store = RelationStore(db_session)
        coordinator = BatchCommitCoordinator(store)

        edit = await coordinator.open(a1.id)
        coordinator.stage(edit, "tags", [t1.id, t2.id])
        coordinator.stage(edit, "authors", [u1.id, u2.id])
        with pytest.raises(ConstraintViolationError) as exc_info:
            await coordinator.commit_all(edit)

        assert [(v.field, v.code) for v in exc_info.value.violations] == [
            ("authors", ViolationCode.MAX_RELATIONS_EXCEEDED)
        ]
        assert await _targets(store, tags.id, a1.id) == []
        assert await _targets(store, authors.id, a1.id) == []

    async def test_commits_fields_with_metadata(self, db_session: AsyncSession) -> None:
        a1, tags, authors, tag, user = await _article_with_fields(db_session)
        (t1,) = await create_entries(db_session, tag, 1)
        (u1,) = await create_entries(db_session, user, 1)
        store = RelationStore(db_session)
        coordinator = BatchCommitCoordinator(store)

        edit = await coordinator.open(a1.id)
        coordinator.stage(edit, "article_authors", [u1.id], {u1.id: {"role": "lead"}})
        coordinator.stage(edit, "tags", [t1.id])
        result = await coordinator.commit_all(edit)

        assert list(result.results) == ["tags", "authors"]
        (author,) = await store.list_by_source(authors.id, a1.id)
        assert author.relation_data == {"role": "lead"}
        assert edit.snapshot["authors"].relation_data == {u1.id: {"role": "lead"}}

    async def test_open_missing_entry(self, db_session: AsyncSession) -> None:
        coordinator = BatchCommitCoordinator(RelationStore(db_session))
        with pytest.raises(NotFoundError):
            await coordinator.open(999_999)


class TestCompensation:
    async def test_failed_field_restores_applied_fields(self, db_session: AsyncSession) -> None:
        a1, tags, authors, tag, user = await _article_with_fields(db_session)
        t1, t2, t3 = await create_entries(db_session, tag, 3)
        (u1,) = await create_entries(db_session, user, 1)
        await RelationStore(db_session).replace_for_source(
            tags.id, a1.id, [t1.id, t2.id], {t1.id: {"pinned": True}}
        )

        store = FlakyRelationStore(db_session, failing_definition_id=authors.id)
        coordinator = BatchCommitCoordinator(store)
        edit = await coordinator.open(a1.id)
        coordinator.stage(edit, "tags", [t3.id])
        coordinator.stage(edit, "authors", [u1.id])

        with pytest.raises(StorageError):
            await coordinator.commit_all(edit)

        restored = await store.list_by_source(tags.id, a1.id)
        assert [r.target_entry_id for r in restored] == [t1.id, t2.id]
        assert restored[0].relation_data == {"pinned": True}
        assert await _targets(store, authors.id, a1.id) == []
        assert edit.is_dirty

    async def test_restores_value_committed_after_open(self, db_session: AsyncSession) -> None:
        a1, tags, authors, tag, user = await _article_with_fields(db_session)
        t1, t2, t3 = await create_entries(db_session, tag, 3)
        (u1,) = await create_entries(db_session, user, 1)
        store = FlakyRelationStore(db_session, failing_definition_id=authors.id)
        coordinator = BatchCommitCoordinator(store)
        edit = await coordinator.open(a1.id)

        other_coordinator = BatchCommitCoordinator(RelationStore(db_session))
        other = await other_coordinator.open(a1.id)
        other_coordinator.stage(other, "tags", [t1.id, t2.id])
        await other_coordinator.commit_all(other)

        coordinator.stage(edit, "tags", [t3.id])
        coordinator.stage(edit, "authors", [u1.id])
        with pytest.raises(StorageError):
            await coordinator.commit_all(edit)

        assert await _targets(store, tags.id, a1.id) == [t1.id, t2.id]
        assert await _targets(store, authors.id, a1.id) == []


class TestOptimisticLocking:
    async def test_stale_session_is_rejected(self, db_session: AsyncSession) -> None:
        a1, tags, _authors, tag, _user = await _article_with_fields(db_session)
        t1, t2 = await create_entries(db_session, tag, 2)
        store = RelationStore(db_session)
        coordinator = BatchCommitCoordinator(store, optimistic_locking=True)

        edit = await coordinator.open(a1.id)
        other = await coordinator.open(a1.id)
        coordinator.stage(other, "tags", [t2.id])
        await coordinator.commit_all(other)

        coordinator.stage(edit, "tags", [t1.id])
        with pytest.raises(ConcurrentEditError) as exc_info:
            await coordinator.commit_all(edit)

        assert exc_info.value.fields == ["tags"]
        assert await _targets(store, tags.id, a1.id) == [t2.id]

    async def test_last_write_wins_without_locking(self, db_session: AsyncSession) -> None:
        a1, tags, _authors, tag, _user = await _article_with_fields(db_session)
        t1, t2 = await create_entries(db_session, tag, 2)
        store = RelationStore(db_session)
        coordinator = BatchCommitCoordinator(store)

        edit = await coordinator.open(a1.id)
        other = await coordinator.open(a1.id)
        coordinator.stage(other, "tags", [t2.id])
        await coordinator.commit_all(other)

        coordinator.stage(edit, "tags", [t1.id])
        await coordinator.commit_all(edit)

        assert await _targets(store, tags.id, a1.id) == [t1.id]
