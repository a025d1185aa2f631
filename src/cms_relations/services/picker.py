# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Candidate search for relation pickers.

The picker is read-only. It lists entries of the definition's target
type that could be related to a source entry and reports how many more the
source may take. ``PickerSelection`` applies that budget to an in-progress
selection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from cms_relations.errors import StorageError
from cms_relations.models.content import ContentEntry
from cms_relations.services.relations import RelationStore


@dataclass(frozen=True, slots=True)
class CandidateFilters:
    search: str | None = None
    status: str | None = None
    exclude_ids: frozenset[int] = frozenset()
    exclude_related: bool = False


@dataclass(frozen=True, slots=True)
class CandidatePage:
    entries: list[ContentEntry]
    has_more: bool
    remaining_capacity: int | None
    current_count: int


class CandidatePicker:
    def __init__(self, store: RelationStore, *, timeout_seconds: float = 10.0) -> None:
        self.store = store
        self.timeout_seconds = timeout_seconds

    async def search(
        self,
        definition_id: UUID,
        source_entry_id: int,
        filters: CandidateFilters | None = None,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> CandidatePage:
        """Return one page of candidate targets, newest first.

        The source entry is always excluded. ``exclude_related`` also hides
        entries the source is already related to.
        """
        filters = filters or CandidateFilters()
        definition = await self.store.get_active_definition(definition_id)
        await self.store.load_source(definition, source_entry_id)
        current = await self.store.list_by_source(definition.id, source_entry_id)

        exclude = set(filters.exclude_ids) | {source_entry_id}
        if filters.exclude_related:
            exclude.update(r.target_entry_id for r in current)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                rows = await self.store.entries.search(
                    definition.target_content_type_id,
                    search=filters.search,
                    status=filters.status,
                    exclude_ids=exclude,
                    limit=limit + 1,
                    offset=(max(page, 1) - 1) * limit,
                )
        except TimeoutError as exc:
            raise StorageError(
                f"Candidate search timed out after {self.timeout_seconds}s"
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError("Candidate search failed") from exc

        remaining = (
            None
            if definition.max_relations is None
            else max(definition.max_relations - len(current), 0)
        )
        return CandidatePage(
            entries=rows[:limit],
            has_more=len(rows) > limit,
            remaining_capacity=remaining,
            current_count=len(current),
        )


@dataclass(slots=True)
class PickerSelection:
    """Entries picked in one session, bounded by ``capacity`` (None = unbounded)."""

    capacity: int | None
    selected: list[int] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and len(self.selected) >= self.capacity

    @property
    def remaining(self) -> int | None:
        if self.capacity is None:
            return None
        return max(self.capacity - len(self.selected), 0)

    def toggle(self, entry_id: int) -> bool:
        """Select or deselect an entry. Returns False if the selection is full."""
        if entry_id in self.selected:
            self.selected.remove(entry_id)
            return True
        if self.is_full:
            return False
        self.selected.append(entry_id)
        return True

    def select_all(self, entry_ids: Iterable[int]) -> list[int]:
        """Add visible entries up to the remaining budget; returns those added."""
        added: list[int] = []
        for entry_id in entry_ids:
            if entry_id in self.selected:
                continue
            if self.is_full:
                break
            self.selected.append(entry_id)
            added.append(entry_id)
        return added

    def clear(self) -> Sequence[int]:
        removed, self.selected = self.selected, []
        return removed
