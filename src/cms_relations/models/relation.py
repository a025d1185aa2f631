# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cms_relations.models.base import (
    Base,
    BigIntegerType,
    JSONType,
    TimestampMixin,
    UUIDMixin,
)


class RelationType(str, enum.Enum):
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


class CascadeBehavior(str, enum.Enum):
    CASCADE = "cascade"
    RESTRICT = "restrict"
    SET_NULL = "set_null"
    NO_ACTION = "no_action"


class RelationDefinition(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "content_relation_definitions"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)

    # Source side owns the relation field
    source_content_type_id: Mapped[int] = mapped_column(
        BigIntegerType,
        ForeignKey("content_types.id"),
        nullable=False,
    )
    source_field_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Target side exposes target_field_name when bidirectional
    target_content_type_id: Mapped[int] = mapped_column(
        BigIntegerType,
        ForeignKey("content_types.id"),
        nullable=False,
    )
    target_field_name: Mapped[str | None] = mapped_column(String(100), default=None)

    relation_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RelationType.MANY_TO_MANY.value
    )
    is_bidirectional: Mapped[bool] = mapped_column(Boolean, default=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)

    on_source_delete: Mapped[str] = mapped_column(
        String(20), default=CascadeBehavior.CASCADE.value
    )
    on_target_delete: Mapped[str] = mapped_column(
        String(20), default=CascadeBehavior.SET_NULL.value
    )

    # NULL max_relations means unbounded
    min_relations: Mapped[int] = mapped_column(Integer, default=0)
    max_relations: Mapped[int | None] = mapped_column(Integer, default=None)

    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, object]] = mapped_column(
        "metadata", JSONType, nullable=False, default=dict, server_default="{}"
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    instances: Mapped[list[RelationInstance]] = relationship(
        back_populates="definition",
        passive_deletes="all",
    )

    __table_args__ = (
        UniqueConstraint(
            "source_content_type_id",
            "source_field_name",
            name="uq_relation_definitions_source_field",
        ),
        CheckConstraint(
            "relation_type IN ('one_to_one', 'one_to_many', 'many_to_many')",
            name="ck_relation_definitions_type",
        ),
        CheckConstraint(
            "on_source_delete IN ('cascade', 'restrict', 'set_null', 'no_action')",
            name="ck_relation_definitions_on_source_delete",
        ),
        CheckConstraint(
            "on_target_delete IN ('cascade', 'restrict', 'set_null', 'no_action')",
            name="ck_relation_definitions_on_target_delete",
        ),
        CheckConstraint(
            "min_relations >= 0 AND (max_relations IS NULL OR max_relations >= min_relations)",
            name="ck_relation_definitions_min_max",
        ),
        Index("idx_relation_definitions_source_type", "source_content_type_id"),
        Index("idx_relation_definitions_target_type", "target_content_type_id"),
        Index(
            "idx_relation_definitions_active",
            "is_active",
            postgresql_where=text("is_active = true"),
        ),
    )


class RelationInstance(UUIDMixin, TimestampMixin, Base):
    """One edge between two content entries under a definition.

    Entry ids deliberately carry no foreign key: a ``no_action`` cascade
    leaves the edge behind after its endpoint is deleted.
    """

    __tablename__ = "content_relations"

    relation_definition_id: Mapped[UUID] = mapped_column(
        ForeignKey("content_relation_definitions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    source_entry_id: Mapped[int] = mapped_column(BigIntegerType, nullable=False)
    target_entry_id: Mapped[int] = mapped_column(BigIntegerType, nullable=False)
    relation_data: Mapped[dict[str, object]] = mapped_column(
        JSONType, nullable=False, default=dict, server_default="{}"
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    definition: Mapped[RelationDefinition] = relationship(back_populates="instances")

    __table_args__ = (
        UniqueConstraint(
            "relation_definition_id",
            "source_entry_id",
            "target_entry_id",
            name="uq_content_relations_edge",
        ),
        CheckConstraint(
            "source_entry_id != target_entry_id",
            name="ck_content_relations_no_self_reference",
        ),
        Index("idx_content_relations_definition", "relation_definition_id"),
        Index("idx_content_relations_source", "source_entry_id"),
        Index("idx_content_relations_target", "target_entry_id"),
        Index(
            "idx_content_relations_sort",
            "relation_definition_id",
            "source_entry_id",
            "sort_order",
        ),
        Index(
            "idx_content_relations_reverse",
            "relation_definition_id",
            "target_entry_id",
            "source_entry_id",
        ),
    )
