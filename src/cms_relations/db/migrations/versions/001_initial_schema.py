# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Initial schema: content types, entries, relation definitions and relations.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None

_CASCADE_BEHAVIORS = "('cascade', 'restrict', 'set_null', 'no_action')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ------------------------------------------------------------------
    # 1. content_types
    # ------------------------------------------------------------------
    op.create_table(
        "content_types",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        *_timestamps(),
    )

    # ------------------------------------------------------------------
    # 2. content_entries
    # ------------------------------------------------------------------
    op.create_table(
        "content_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "content_type_id",
            sa.BigInteger(),
            sa.ForeignKey("content_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("data", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("content_type_id", "slug"),
        sa.CheckConstraint(
            "status IN ('draft', 'published', 'archived')",
            name="ck_content_entries_status",
        ),
    )
    op.create_index("idx_content_entries_type", "content_entries", ["content_type_id"])
    op.create_index("idx_content_entries_status", "content_entries", ["status"])

    # ------------------------------------------------------------------
    # 3. content_relation_definitions
    # ------------------------------------------------------------------
    op.create_table(
        "content_relation_definitions",
        sa.Column(
            "id",
            sa.Uuid(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "source_content_type_id",
            sa.BigInteger(),
            sa.ForeignKey("content_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_field_name", sa.String(100), nullable=False),
        sa.Column(
            "target_content_type_id",
            sa.BigInteger(),
            sa.ForeignKey("content_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("target_field_name", sa.String(100), nullable=True),
        sa.Column(
            "relation_type",
            sa.String(20),
            nullable=False,
            server_default="many_to_many",
        ),
        sa.Column("is_bidirectional", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "on_source_delete", sa.String(20), nullable=False, server_default="cascade"
        ),
        sa.Column(
            "on_target_delete", sa.String(20), nullable=False, server_default="set_null"
        ),
        sa.Column("min_relations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_relations", sa.Integer(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.UniqueConstraint(
            "source_content_type_id",
            "source_field_name",
            name="uq_relation_definitions_source_field",
        ),
        sa.CheckConstraint(
            "relation_type IN ('one_to_one', 'one_to_many', 'many_to_many')",
            name="ck_relation_definitions_type",
        ),
        sa.CheckConstraint(
            f"on_source_delete IN {_CASCADE_BEHAVIORS}",
            name="ck_relation_definitions_on_source_delete",
        ),
        sa.CheckConstraint(
            f"on_target_delete IN {_CASCADE_BEHAVIORS}",
            name="ck_relation_definitions_on_target_delete",
        ),
        sa.CheckConstraint(
            "min_relations >= 0 AND (max_relations IS NULL OR max_relations >= min_relations)",
            name="ck_relation_definitions_min_max",
        ),
    )
    op.create_index(
        "idx_relation_definitions_source_type",
        "content_relation_definitions",
        ["source_content_type_id"],
    )
    op.create_index(
        "idx_relation_definitions_target_type",
        "content_relation_definitions",
        ["target_content_type_id"],
    )
    op.create_index(
        "idx_relation_definitions_active",
        "content_relation_definitions",
        ["is_active"],
        postgresql_where=sa.text("is_active = true"),
    )

    # ------------------------------------------------------------------
    # 4. content_relations
    # ------------------------------------------------------------------
    # Entry ids have no foreign key: no_action cascades leave dangling rows.
    op.create_table(
        "content_relations",
        sa.Column(
            "id",
            sa.Uuid(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "relation_definition_id",
            sa.Uuid(),
            sa.ForeignKey("content_relation_definitions.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("source_entry_id", sa.BigInteger(), nullable=False),
        sa.Column("target_entry_id", sa.BigInteger(), nullable=False),
        sa.Column("relation_data", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint(
            "relation_definition_id",
            "source_entry_id",
            "target_entry_id",
            name="uq_content_relations_edge",
        ),
        sa.CheckConstraint(
            "source_entry_id != target_entry_id",
            name="ck_content_relations_no_self_reference",
        ),
    )
    op.create_index(
        "idx_content_relations_definition", "content_relations", ["relation_definition_id"]
    )
    op.create_index("idx_content_relations_source", "content_relations", ["source_entry_id"])
    op.create_index("idx_content_relations_target", "content_relations", ["target_entry_id"])
    op.create_index(
        "idx_content_relations_sort",
        "content_relations",
        ["relation_definition_id", "source_entry_id", "sort_order"],
    )
    op.create_index(
        "idx_content_relations_reverse",
        "content_relations",
        ["relation_definition_id", "target_entry_id", "source_entry_id"],
    )


def downgrade() -> None:
    op.drop_table("content_relations")
    op.drop_table("content_relation_definitions")
    op.drop_table("content_entries")
    op.drop_table("content_types")
