# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Content types and entries.

These tables belong to the entry store; the relation engine reads them to
check endpoint content types and deletes entries through the cascade
resolver.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cms_relations.models.base import Base, BigIntegerType, JSONType, TimestampMixin


class EntryStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(TimestampMixin, Base):
    __tablename__ = "content_types"

    id: Mapped[int] = mapped_column(BigIntegerType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    entries: Mapped[list[ContentEntry]] = relationship(back_populates="content_type")


class ContentEntry(TimestampMixin, Base):
    __tablename__ = "content_entries"

    id: Mapped[int] = mapped_column(BigIntegerType, primary_key=True, autoincrement=True)
    content_type_id: Mapped[int] = mapped_column(
        BigIntegerType,
        ForeignKey("content_types.id"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=EntryStatus.DRAFT.value)
    data: Mapped[dict[str, object]] = mapped_column(
        JSONType, nullable=False, default=dict, server_default="{}"
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    content_type: Mapped[ContentType] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("content_type_id", "slug"),
        CheckConstraint(
            "status IN ('draft', 'published', 'archived')",
            name="ck_content_entries_status",
        ),
        Index("idx_content_entries_type", "content_type_id"),
        Index("idx_content_entries_status", "status"),
    )
