# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from cms_relations.models.base import Base, TimestampMixin, UUIDMixin
from cms_relations.models.content import ContentEntry, ContentType, EntryStatus
from cms_relations.models.relation import (
    CascadeBehavior,
    RelationDefinition,
    RelationInstance,
    RelationType,
)

__all__ = [
    "Base",
    "CascadeBehavior",
    "ContentEntry",
    "ContentType",
    "EntryStatus",
    "RelationDefinition",
    "RelationInstance",
    "RelationType",
    "TimestampMixin",
    "UUIDMixin",
]
