# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.errors import DefinitionInUseError, DefinitionValidationError, NotFoundError
from cms_relations.models.content import ContentType
from cms_relations.models.relation import RelationInstance
from cms_relations.services.definitions import DefinitionStore
from tests.conftest import create_content_type, create_entries


async def _setup_types(db_session: AsyncSession) -> tuple[ContentType, ContentType]:
    article = await create_content_type(db_session, "article")
    tag = await create_content_type(db_session, "tag")
    return article, tag


def _values(article: ContentType, tag: ContentType, **overrides: Any) -> dict[str, Any]:
    values: dict[str, Any] = {
        "name": "article_tags",
        "display_name": "Tags",
        "source_content_type_id": article.id,
        "source_field_name": "tags",
        "target_content_type_id": tag.id,
    }
    values.update(overrides)
    return values


def _fields(exc: DefinitionValidationError) -> set[str]:
    return {e.field for e in exc.errors}


class TestCreateDefinition:
    async def test_create_applies_defaults(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)

        definition = await store.create(_values(article, tag))

        assert definition.id is not None
        assert definition.relation_type == "many_to_many"
        assert definition.on_source_delete == "cascade"
        assert definition.on_target_delete == "set_null"
        assert definition.min_relations == 0
        assert definition.max_relations is None
        assert definition.is_active is True
        assert definition.metadata_ == {}

        fetched = await store.get(definition.id)
        assert fetched.name == "article_tags"

    async def test_invalid_name(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, name="Article Tags"))
        assert _fields(exc_info.value) == {"name"}

    async def test_duplicate_name(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        await store.create(_values(article, tag))
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, source_field_name="labels"))
        assert _fields(exc_info.value) == {"name"}

    async def test_duplicate_source_field(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        await store.create(_values(article, tag))
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, name="article_labels"))
        assert _fields(exc_info.value) == {"source_field_name"}

    async def test_same_field_name_on_other_source_type(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        page = await create_content_type(db_session, "page")
        store = DefinitionStore(db_session)
        await store.create(_values(article, tag))
        definition = await store.create(
            _values(article, tag, name="page_tags", source_content_type_id=page.id)
        )
        assert definition.source_field_name == "tags"

    async def test_missing_content_type(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, target_content_type_id=999_999))
        assert _fields(exc_info.value) == {"target_content_type_id"}

    async def test_self_referential_bidirectional_needs_target_field(
        self, db_session: AsyncSession
    ) -> None:
        article, _tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        base = _values(
            article,
            article,
            name="related_articles",
            source_field_name="related",
            is_bidirectional=True,
        )
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(base)
        assert _fields(exc_info.value) == {"target_field_name"}

        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create({**base, "target_field_name": "related"})
        assert _fields(exc_info.value) == {"target_field_name"}

        definition = await store.create({**base, "target_field_name": "related_by"})
        assert definition.target_field_name == "related_by"

    async def test_bounds(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, min_relations=3, max_relations=2))
        assert _fields(exc_info.value) == {"min_relations"}

        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, max_relations=0))
        assert _fields(exc_info.value) == {"max_relations"}

    async def test_collects_every_problem(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(
                _values(
                    article,
                    tag,
                    name="Bad Name",
                    source_content_type_id=999_998,
                    min_relations=-1,
                )
            )
        assert _fields(exc_info.value) == {"name", "source_content_type_id", "min_relations"}

    async def test_unknown_field(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.create(_values(article, tag, colour="red"))
        assert _fields(exc_info.value) == {"colour"}


class TestUpdateDefinition:
    async def test_update_validates_merged_result(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        definition = await store.create(_values(article, tag, max_relations=2))

        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.update(definition.id, {"min_relations": 3})
        assert _fields(exc_info.value) == {"min_relations"}

        updated = await store.update(definition.id, {"max_relations": None, "min_relations": 3})
        assert updated.max_relations is None
        assert updated.min_relations == 3

    async def test_update_keeps_own_name(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        definition = await store.create(_values(article, tag))
        updated = await store.update(
            definition.id, {"name": "article_tags", "display_name": "Topics"}
        )
        assert updated.display_name == "Topics"

    async def test_content_type_frozen_while_instances_exist(
        self, db_session: AsyncSession
    ) -> None:
        article, tag = await _setup_types(db_session)
        category = await create_content_type(db_session, "category")
        store = DefinitionStore(db_session)
        definition = await store.create(_values(article, tag))
        (a1,) = await create_entries(db_session, article, 1)
        (t1,) = await create_entries(db_session, tag, 1)
        db_session.add(
            RelationInstance(
                relation_definition_id=definition.id,
                source_entry_id=a1.id,
                target_entry_id=t1.id,
            )
        )
        await db_session.flush()

        with pytest.raises(DefinitionValidationError) as exc_info:
            await store.update(definition.id, {"target_content_type_id": category.id})
        assert _fields(exc_info.value) == {"target_content_type_id"}

    async def test_update_missing(self, db_session: AsyncSession) -> None:
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            await DefinitionStore(db_session).update(uuid4(), {"display_name": "x"})


class TestDeleteDefinition:
    async def test_delete_in_use(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        definition = await store.create(_values(article, tag))
        (a1,) = await create_entries(db_session, article, 1)
        t1, t2 = await create_entries(db_session, tag, 2)
        for target in (t1, t2):
            db_session.add(
                RelationInstance(
                    relation_definition_id=definition.id,
                    source_entry_id=a1.id,
                    target_entry_id=target.id,
                )
            )
        await db_session.flush()

        with pytest.raises(DefinitionInUseError) as exc_info:
            await store.delete(definition.id)
        assert exc_info.value.count == 2
        assert (await store.get(definition.id)).name == "article_tags"

    async def test_delete_unused(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        store = DefinitionStore(db_session)
        definition = await store.create(_values(article, tag))
        await store.delete(definition.id)
        with pytest.raises(NotFoundError):
            await store.get(definition.id)


class TestListDefinitions:
    async def test_filters_order_and_counts(self, db_session: AsyncSession) -> None:
        article, tag = await _setup_types(db_session)
        user = await create_content_type(db_session, "user")
        store = DefinitionStore(db_session)
        tags = await store.create(_values(article, tag, sort_order=2))
        authors = await store.create(
            _values(
                article,
                user,
                name="article_authors",
                display_name="Authors",
                source_field_name="authors",
                sort_order=1,
                description="People who wrote the article",
            )
        )
        await store.create(
            _values(
                user,
                tag,
                name="user_interests",
                display_name="Interests",
                source_field_name="interests",
                relation_type="one_to_many",
                is_active=False,
            )
        )

        a1, a2 = await create_entries(db_session, article, 2)
        t1, t2 = await create_entries(db_session, tag, 2)
        for source, target in ((a1, t1), (a1, t2), (a2, t1)):
            db_session.add(
                RelationInstance(
                    relation_definition_id=tags.id,
                    source_entry_id=source.id,
                    target_entry_id=target.id,
                )
            )
        await db_session.flush()

        items, total = await store.list_definitions(source_content_type_id=article.id)
        assert total == 2
        assert [i.definition.name for i in items] == ["article_authors", "article_tags"]
        counts = {i.definition.id: i.counts for i in items}
        assert counts[tags.id].total_relations == 3
        assert counts[tags.id].unique_sources == 2
        assert counts[tags.id].unique_targets == 2
        assert counts[authors.id].total_relations == 0

        items, total = await store.list_definitions(is_active=False)
        assert [i.definition.name for i in items] == ["user_interests"]

        items, total = await store.list_definitions(relation_type="one_to_many")
        assert total == 1

        items, total = await store.list_definitions(search="wrote")
        assert [i.definition.name for i in items] == ["article_authors"]

        items, total = await store.list_definitions(limit=1, offset=1)
        assert total == 3
        assert len(items) == 1
