# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from cms_relations.repositories.base import BaseRepository
from cms_relations.repositories.definition_repository import DefinitionRepository
from cms_relations.repositories.entry_repository import EntryRepository
from cms_relations.repositories.relation_repository import RelationCounts, RelationRepository

__all__ = [
    "BaseRepository",
    "DefinitionRepository",
    "EntryRepository",
    "RelationCounts",
    "RelationRepository",
]
