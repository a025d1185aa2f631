# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""All-or-nothing saves across the relation fields of one entry.

Usage:
    coordinator = BatchCommitCoordinator(RelationStore(db))
    edit = await coordinator.open(entry_id)
    coordinator.stage(edit, "tags", [3, 4, 5])
    coordinator.stage(edit, "authors", [9])
    await coordinator.commit_all(edit)

Pending edits live in the ``EditSession`` the caller holds; the coordinator
keeps no state of its own, so concurrent sessions for the same entry do not
interfere in-process. ``commit_all`` validates every staged field before
writing any of them. Writes are applied one field at a time; if a later
field fails, fields already written are restored in reverse order to the
value they held when the commit wrote them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from cms_relations.errors import (
    ConcurrentEditError,
    ConstraintViolationError,
    DefinitionValidationError,
    NotFoundError,
    StorageError,
)
from cms_relations.models.relation import RelationDefinition
from cms_relations.services.constraints import Violation
from cms_relations.services.relations import EdgeSet, RelationData, RelationStore, ReplaceResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StagedField:
    target_ids: list[int]
    metadata_by_target: dict[int, RelationData] | None = None


@dataclass(slots=True)
class EditSession:
    entry_id: int
    content_type_id: int
    definitions: dict[str, RelationDefinition]
    snapshot: dict[str, EdgeSet]
    staged: dict[str, StagedField] = field(default_factory=dict)

    @property
    def is_dirty(self) -> bool:
        return bool(self.staged)

    def definition_id(self, field_name: str) -> UUID:
        return self.definitions[field_name].id


@dataclass(frozen=True, slots=True)
class CommitResult:
    entry_id: int
    results: dict[str, ReplaceResult]


class BatchCommitCoordinator:
    def __init__(self, store: RelationStore, *, optimistic_locking: bool = False) -> None:
        self.store = store
        self.optimistic_locking = optimistic_locking

    async def open(self, entry_id: int) -> EditSession:
        """Start an edit session with the committed value of every relation field."""
        entry = await self.store.entries.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        definitions = await self.store.definitions.list_for_source_type(entry.content_type_id)
        by_field = {d.source_field_name: d for d in definitions}
        snapshot = {
            name: await self.store.current(d.id, entry_id) for name, d in by_field.items()
        }
        return EditSession(
            entry_id=entry_id,
            content_type_id=entry.content_type_id,
            definitions=by_field,
            snapshot=snapshot,
        )

    def stage(
        self,
        session: EditSession,
        field_name: str,
        ordered_target_ids: Sequence[int],
        metadata_by_target: Mapping[int, RelationData] | None = None,
    ) -> None:
        """Overwrite the pending list for one field. Does not touch storage.

        ``field_name`` is the definition's source field name; the
        definition name is accepted too.
        """
        name = self._resolve_field(session, field_name)
        session.staged[name] = StagedField(
            target_ids=list(ordered_target_ids),
            metadata_by_target=dict(metadata_by_target) if metadata_by_target else None,
        )

    def reset(self, session: EditSession) -> dict[str, EdgeSet]:
        """Drop pending edits and return the committed snapshot."""
        session.staged.clear()
        return dict(session.snapshot)

    async def commit_all(self, session: EditSession) -> CommitResult:
        if not session.staged:
            return CommitResult(entry_id=session.entry_id, results={})

        order = sorted(
            session.staged,
            key=lambda name: (session.definitions[name].sort_order, name),
        )

        violations: list[Violation] = []
        for name in order:
            definition = await self.store.get_active_definition(session.definition_id(name))
            staged = session.staged[name]
            violations.extend(
                v.for_field(name)
                for v in await self.store.check(
                    definition, session.entry_id, staged.target_ids
                )
            )
        if violations:
            logger.info(
                "Batch commit for entry %d rejected with %d violation(s)",
                session.entry_id,
                len(violations),
            )
            raise ConstraintViolationError(violations)

        if self.optimistic_locking:
            stale = [
                name
                for name in order
                if await self.store.current(session.definition_id(name), session.entry_id)
                != session.snapshot[name]
            ]
            if stale:
                raise ConcurrentEditError(stale)

        applied: list[str] = []
        previous: dict[str, EdgeSet] = {}
        results: dict[str, ReplaceResult] = {}
        try:
            for name in order:
                staged = session.staged[name]
                previous[name] = await self.store.current(
                    session.definition_id(name), session.entry_id
                )
                results[name] = await self.store.replace_for_source(
                    session.definition_id(name),
                    session.entry_id,
                    staged.target_ids,
                    staged.metadata_by_target,
                )
                applied.append(name)
        except (StorageError, ConstraintViolationError, NotFoundError):
            logger.warning(
                "Batch commit for entry %d failed after %d field(s); compensating",
                session.entry_id,
                len(applied),
            )
            await self._compensate(session, applied, previous)
            raise

        for name in applied:
            session.snapshot[name] = await self.store.current(
                session.definition_id(name), session.entry_id
            )
        session.staged.clear()
        logger.info(
            "Batch commit for entry %d applied %s", session.entry_id, ", ".join(applied)
        )
        return CommitResult(entry_id=session.entry_id, results=results)

    async def _compensate(
        self, session: EditSession, applied: list[str], previous: Mapping[str, EdgeSet]
    ) -> None:
        failed: list[str] = []
        for name in reversed(applied):
            try:
                await self.store.restore(
                    session.definition_id(name), session.entry_id, previous[name]
                )
            except (StorageError, NotFoundError):
                logger.exception(
                    "Could not restore %s for entry %d", name, session.entry_id
                )
                failed.append(name)
        if failed:
            raise StorageError(
                f"Relations of entry {session.entry_id} could not be restored: "
                + ", ".join(failed)
            )

    @staticmethod
    def _resolve_field(session: EditSession, field_name: str) -> str:
        if field_name in session.definitions:
            return field_name
        for name, definition in session.definitions.items():
            if definition.name == field_name:
                return name
        raise DefinitionValidationError.single(
            field_name, "is not a relation field of this entry"
        )
