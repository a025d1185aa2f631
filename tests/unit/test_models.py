# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from uuid import uuid4

from cms_relations.models.base import Base, TimestampMixin, UUIDMixin
from cms_relations.models.content import ContentEntry, ContentType, EntryStatus
from cms_relations.models.relation import (
    CascadeBehavior,
    RelationDefinition,
    RelationInstance,
    RelationType,
)


class TestRelationDefinitionDefaults:
    def test_column_defaults(self) -> None:
        columns = RelationDefinition.__table__.c
        assert columns["relation_type"].default.arg == "many_to_many"
        assert columns["on_source_delete"].default.arg == "cascade"
        assert columns["on_target_delete"].default.arg == "set_null"
        assert columns["min_relations"].default.arg == 0
        assert columns["is_active"].default.arg is True
        assert columns["is_bidirectional"].default.arg is False
        assert columns["is_required"].default.arg is False

    def test_max_relations_nullable_means_unbounded(self) -> None:
        column = RelationDefinition.__table__.c["max_relations"]
        assert column.nullable is True

    def test_metadata_attribute_maps_to_metadata_column(self) -> None:
        assert "metadata" in RelationDefinition.__table__.c
        definition = RelationDefinition(
            name="article_tags",
            display_name="Tags",
            source_content_type_id=1,
            source_field_name="tags",
            target_content_type_id=2,
            metadata_={"icon": "tag"},
        )
        assert definition.metadata_ == {"icon": "tag"}

    def test_source_field_unique_per_content_type(self) -> None:
        names = {c.name for c in RelationDefinition.__table__.constraints}
        assert "uq_relation_definitions_source_field" in names

    def test_uses_mixins(self) -> None:
        assert issubclass(RelationDefinition, UUIDMixin)
        assert issubclass(RelationDefinition, TimestampMixin)
        assert issubclass(RelationDefinition, Base)


class TestRelationInstance:
    def test_table_and_constraints(self) -> None:
        table = RelationInstance.__table__
        assert table.name == "content_relations"
        names = {c.name for c in table.constraints}
        assert "uq_content_relations_edge" in names
        assert "ck_content_relations_no_self_reference" in names

    def test_entry_ids_have_no_foreign_keys(self) -> None:
        columns = RelationInstance.__table__.c
        assert not columns["source_entry_id"].foreign_keys
        assert not columns["target_entry_id"].foreign_keys

    def test_definition_foreign_key_restricts_delete(self) -> None:
        (fk,) = RelationInstance.__table__.c["relation_definition_id"].foreign_keys
        assert fk.ondelete == "RESTRICT"

    def test_construct(self) -> None:
        definition_id = uuid4()
        instance = RelationInstance(
            relation_definition_id=definition_id,
            source_entry_id=1,
            target_entry_id=2,
            relation_data={"role": "author"},
            sort_order=3,
        )
        assert instance.relation_definition_id == definition_id
        assert instance.relation_data == {"role": "author"}
        assert instance.sort_order == 3


class TestContentModels:
    def test_entry_status_values(self) -> None:
        assert {s.value for s in EntryStatus} == {"draft", "published", "archived"}

    def test_entry_slug_unique_per_type(self) -> None:
        uniques = [
            {col.name for col in c.columns}
            for c in ContentEntry.__table__.constraints
            if c.__class__.__name__ == "UniqueConstraint"
        ]
        assert {"content_type_id", "slug"} in uniques

    def test_content_type_name_unique(self) -> None:
        assert ContentType.__table__.c["name"].unique is True


class TestEnums:
    def test_relation_types(self) -> None:
        assert [t.value for t in RelationType] == ["one_to_one", "one_to_many", "many_to_many"]

    def test_cascade_behaviors(self) -> None:
        assert {b.value for b in CascadeBehavior} == {
            "cascade",
            "restrict",
            "set_null",
            "no_action",
        }
