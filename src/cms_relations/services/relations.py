# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Instance store: validated writes and reads of relation edges.

Every write validates the complete proposal first and only then touches
the database, inside a savepoint, so a rejected request leaves stored
edges unchanged. Transaction commit is left to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.errors import ConstraintViolationError, NotFoundError, StorageError
from cms_relations.models.content import ContentEntry
from cms_relations.models.relation import RelationDefinition, RelationInstance, RelationType
from cms_relations.repositories.definition_repository import DefinitionRepository
from cms_relations.repositories.entry_repository import EntryRepository
from cms_relations.repositories.relation_repository import RelationRepository
from cms_relations.services.constraints import Violation, ViolationCode, validate

logger = logging.getLogger(__name__)

RelationData = Mapping[str, object]

# Lower bounds only matter when a whole edge set is replaced; single-edge
# additions never shrink a set.
_ADDITIVE_IGNORED = frozenset(
    {ViolationCode.MIN_RELATIONS_NOT_MET, ViolationCode.REQUIRED_RELATION_MISSING}
)


@dataclass(frozen=True, slots=True)
class ReplaceResult:
    added: list[int]
    removed: list[int]
    retained: list[int]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


@dataclass(frozen=True, slots=True)
class EdgeSet:
    """Ordered targets of one source under one definition, with their data."""

    target_ids: tuple[int, ...]
    relation_data: Mapping[int, RelationData] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BulkEdge:
    source_entry_id: int
    target_entry_id: int
    relation_data: RelationData | None = None
    sort_order: int | None = None


@dataclass(frozen=True, slots=True)
class BulkEdgeError:
    index: int
    source_entry_id: int
    target_entry_id: int
    violations: list[Violation]


@dataclass(slots=True)
class BulkResult:
    created: list[RelationInstance] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    errors: list[BulkEdgeError] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RelatedItem:
    instance: RelationInstance
    entry_id: int
    entry: ContentEntry | None

    @property
    def is_orphaned(self) -> bool:
        return self.entry is None


@dataclass(frozen=True, slots=True)
class RelationField:
    """One relation field of an entry, forward or reverse."""

    field_name: str
    display_name: str
    definition: RelationDefinition
    is_reverse: bool
    items: list[RelatedItem]


def _holds_single_source(definition: RelationDefinition) -> bool:
    return definition.relation_type in (
        RelationType.ONE_TO_ONE.value,
        RelationType.ONE_TO_MANY.value,
    )


class RelationStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.definitions = DefinitionRepository(session)
        self.relations = RelationRepository(session)
        self.entries = EntryRepository(session)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def get_active_definition(self, definition_id: UUID) -> RelationDefinition:
        definition = await self.definitions.get_by_id(definition_id)
        if definition is None or not definition.is_active:
            raise NotFoundError("Relation definition", definition_id)
        return definition

    async def load_source(
        self, definition: RelationDefinition, source_entry_id: int
    ) -> ContentEntry:
        entry = await self.entries.get_by_id(source_entry_id)
        if entry is None:
            raise NotFoundError("Entry", source_entry_id)
        if entry.content_type_id != definition.source_content_type_id:
            raise ConstraintViolationError(
                [
                    Violation(
                        ViolationCode.CONTENT_TYPE_MISMATCH,
                        f"Entry {source_entry_id} cannot be the source of {definition.name}",
                    )
                ]
            )
        return entry

    async def current(self, definition_id: UUID, source_entry_id: int) -> EdgeSet:
        instances = await self.relations.list_by_source(definition_id, source_entry_id)
        return EdgeSet(
            target_ids=tuple(r.target_entry_id for r in instances),
            relation_data={r.target_entry_id: dict(r.relation_data) for r in instances},
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def check(
        self,
        definition: RelationDefinition,
        source_entry_id: int,
        target_ids: Sequence[int],
        *,
        pending_bound: Mapping[int, int] | None = None,
    ) -> list[Violation]:
        """Return every violation of the proposed edge set, without writing.

        Target endpoints are checked first (existence and content type),
        then the definition's constraints.
        """
        violations: list[Violation] = []
        unique_targets = list(dict.fromkeys(target_ids))
        entries = await self.entries.get_many(unique_targets)
        for target_id in unique_targets:
            entry = entries.get(target_id)
            if entry is None:
                violations.append(
                    Violation(
                        ViolationCode.TARGET_NOT_FOUND,
                        f"Entry {target_id} does not exist",
                        target_id=target_id,
                    )
                )
            elif entry.content_type_id != definition.target_content_type_id:
                violations.append(
                    Violation(
                        ViolationCode.CONTENT_TYPE_MISMATCH,
                        f"Entry {target_id} is not a valid target for {definition.name}",
                        target_id=target_id,
                    )
                )

        bound: dict[int, int] = {}
        if _holds_single_source(definition):
            bound = await self.relations.bound_sources(
                definition.id, unique_targets, exclude_source_id=source_entry_id
            )
            for target_id, source_id in (pending_bound or {}).items():
                bound.setdefault(target_id, source_id)

        violations.extend(validate(definition, source_entry_id, target_ids, bound))
        return violations

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def replace_for_source(
        self,
        definition_id: UUID,
        source_entry_id: int,
        ordered_target_ids: Sequence[int],
        metadata_by_target: Mapping[int, RelationData] | None = None,
    ) -> ReplaceResult:
        """Replace the edge set of one source under one definition.

        Targets keep the order given; ``sort_order`` is the list position.
        Retained edges keep their ``relation_data`` unless new data is given.
        """
        definition = await self.get_active_definition(definition_id)
        await self.load_source(definition, source_entry_id)
        target_ids = list(ordered_target_ids)

        violations = await self.check(definition, source_entry_id, target_ids)
        if violations:
            raise ConstraintViolationError(violations)

        return await self._apply(
            definition, source_entry_id, target_ids, metadata_by_target or {}
        )

    async def restore(self, definition_id: UUID, source_entry_id: int, edges: EdgeSet) -> ReplaceResult:
        """Write back a previously captured edge set without validating it."""
        definition = await self.definitions.get_by_id(definition_id)
        if definition is None:
            raise NotFoundError("Relation definition", definition_id)
        return await self._apply(
            definition, source_entry_id, list(edges.target_ids), edges.relation_data
        )

    async def _apply(
        self,
        definition: RelationDefinition,
        source_entry_id: int,
        target_ids: list[int],
        metadata_by_target: Mapping[int, RelationData],
    ) -> ReplaceResult:
        try:
            async with self.session.begin_nested():
                current = await self.relations.list_by_source(definition.id, source_entry_id)
                by_target = {r.target_entry_id: r for r in current}
                proposed = set(target_ids)

                removed = [r for r in current if r.target_entry_id not in proposed]
                removed_ids = [r.target_entry_id for r in removed]
                await self.relations.delete_by_ids([r.id for r in removed])

                added: list[int] = []
                retained: list[int] = []
                for position, target_id in enumerate(target_ids):
                    data = metadata_by_target.get(target_id)
                    instance = by_target.get(target_id)
                    if instance is None:
                        self.session.add(
                            RelationInstance(
                                relation_definition_id=definition.id,
                                source_entry_id=source_entry_id,
                                target_entry_id=target_id,
                                relation_data=dict(data or {}),
                                sort_order=position,
                            )
                        )
                        added.append(target_id)
                    else:
                        instance.sort_order = position
                        if data is not None:
                            instance.relation_data = dict(data)
                        retained.append(target_id)
                await self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to write %s relations for entry %d: %s",
                definition.name,
                source_entry_id,
                exc,
            )
            raise StorageError(f"Could not write relations for {definition.name}") from exc

        result = ReplaceResult(
            added=added,
            removed=removed_ids,
            retained=retained,
        )
        if result.changed:
            logger.info(
                "Replaced %s for entry %d (added=%s removed=%s retained=%d)",
                definition.name,
                source_entry_id,
                result.added,
                result.removed,
                len(result.retained),
            )
        return result

    async def add(
        self,
        definition_id: UUID,
        source_entry_id: int,
        target_entry_id: int,
        *,
        relation_data: RelationData | None = None,
        sort_order: int | None = None,
    ) -> RelationInstance:
        definition = await self.get_active_definition(definition_id)
        await self.load_source(definition, source_entry_id)
        current = await self.relations.list_by_source(definition.id, source_entry_id)

        if any(r.target_entry_id == target_entry_id for r in current):
            raise ConstraintViolationError(
                [
                    Violation(
                        ViolationCode.DUPLICATE_TARGET,
                        f"Entry {source_entry_id} is already related to entry {target_entry_id}",
                        target_id=target_entry_id,
                    )
                ]
            )

        proposed = [r.target_entry_id for r in current] + [target_entry_id]
        violations = [
            v
            for v in await self.check(definition, source_entry_id, proposed)
            if v.code not in _ADDITIVE_IGNORED
        ]
        if violations:
            raise ConstraintViolationError(violations)

        instance = RelationInstance(
            relation_definition_id=definition.id,
            source_entry_id=source_entry_id,
            target_entry_id=target_entry_id,
            relation_data=dict(relation_data or {}),
            sort_order=len(current) if sort_order is None else sort_order,
        )
        try:
            async with self.session.begin_nested():
                await self.relations.create(instance)
        except SQLAlchemyError as exc:
            raise StorageError("Could not create relation") from exc
        logger.info(
            "Related entry %d to %d via %s", source_entry_id, target_entry_id, definition.name
        )
        return instance

    async def bulk_create(self, definition_id: UUID, edges: Sequence[BulkEdge]) -> BulkResult:
        """Create many edges under one definition.

        Edges that already exist (stored or earlier in the batch) are
        skipped. Invalid edges are reported per index and not written; the
        valid ones are.
        """
        definition = await self.get_active_definition(definition_id)
        result = BulkResult()
        targets_by_source: dict[int, list[int]] = {}
        pending_bound: dict[int, int] = {}
        to_create: list[RelationInstance] = []

        for index, edge in enumerate(edges):
            source_id, target_id = edge.source_entry_id, edge.target_entry_id
            try:
                await self.load_source(definition, source_id)
            except NotFoundError as exc:
                result.errors.append(
                    BulkEdgeError(
                        index,
                        source_id,
                        target_id,
                        [Violation(ViolationCode.SOURCE_NOT_FOUND, str(exc))],
                    )
                )
                continue
            except ConstraintViolationError as exc:
                result.errors.append(BulkEdgeError(index, source_id, target_id, exc.violations))
                continue

            if source_id not in targets_by_source:
                stored = await self.relations.list_by_source(definition.id, source_id)
                targets_by_source[source_id] = [r.target_entry_id for r in stored]
            existing = targets_by_source[source_id]
            if target_id in existing:
                result.skipped.append(index)
                continue

            violations = [
                v
                for v in await self.check(
                    definition,
                    source_id,
                    existing + [target_id],
                    pending_bound={
                        t: s for t, s in pending_bound.items() if s != source_id
                    },
                )
                if v.code not in _ADDITIVE_IGNORED
            ]
            if violations:
                result.errors.append(BulkEdgeError(index, source_id, target_id, violations))
                continue

            existing.append(target_id)
            if _holds_single_source(definition):
                pending_bound[target_id] = source_id
            to_create.append(
                RelationInstance(
                    relation_definition_id=definition.id,
                    source_entry_id=source_id,
                    target_entry_id=target_id,
                    relation_data=dict(edge.relation_data or {}),
                    sort_order=len(existing) - 1 if edge.sort_order is None else edge.sort_order,
                )
            )

        if to_create:
            try:
                async with self.session.begin_nested():
                    self.session.add_all(to_create)
                    await self.session.flush()
            except SQLAlchemyError as exc:
                raise StorageError("Could not create relations") from exc
        result.created = to_create
        logger.info(
            "Bulk created %d %s relation(s) (skipped=%d failed=%d)",
            len(result.created),
            definition.name,
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def update(
        self,
        relation_id: UUID,
        *,
        relation_data: RelationData | None = None,
        sort_order: int | None = None,
    ) -> RelationInstance:
        instance = await self.get(relation_id)
        if relation_data is not None:
            instance.relation_data = dict(relation_data)
        if sort_order is not None:
            instance.sort_order = sort_order
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise StorageError("Could not update relation") from exc
        return instance

    async def remove(self, relation_id: UUID) -> None:
        """Delete one edge unless that would leave its source below the minimum."""
        instance = await self.get(relation_id)
        definition = await self.definitions.get_by_id(instance.relation_definition_id)
        if definition is not None and definition.is_active:
            remaining = (
                await self.relations.count_for_entry_side(
                    definition.id, instance.source_entry_id, "source"
                )
                - 1
            )
            violations: list[Violation] = []
            min_relations = definition.min_relations or 0
            if remaining < min_relations:
                violations.append(
                    Violation(
                        ViolationCode.MIN_RELATIONS_NOT_MET,
                        f"At least {min_relations} relation(s) required, got {remaining}",
                        limit=min_relations,
                    )
                )
            if definition.is_required and remaining == 0:
                violations.append(
                    Violation(
                        ViolationCode.REQUIRED_RELATION_MISSING,
                        "This relation is required",
                    )
                )
            if violations:
                raise ConstraintViolationError(violations)
        try:
            async with self.session.begin_nested():
                await self.relations.delete(instance)
        except SQLAlchemyError as exc:
            raise StorageError("Could not delete relation") from exc
        logger.info(
            "Removed relation %s (%d -> %d)",
            relation_id,
            instance.source_entry_id,
            instance.target_entry_id,
        )

    async def delete_for_entry(self, entry_id: int) -> int:
        try:
            return await self.relations.delete_for_entry(entry_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not delete relations of entry {entry_id}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, relation_id: UUID) -> RelationInstance:
        instance = await self.relations.get_by_id(relation_id)
        if instance is None:
            raise NotFoundError("Relation", relation_id)
        return instance

    async def list_by_source(
        self, definition_id: UUID, source_entry_id: int
    ) -> list[RelationInstance]:
        return await self.relations.list_by_source(definition_id, source_entry_id)

    async def list_by_target(
        self, definition_id: UUID, target_entry_id: int
    ) -> list[RelationInstance]:
        return await self.relations.list_by_target(definition_id, target_entry_id)

    async def list_relations(
        self,
        *,
        source_entry_id: int | None = None,
        target_entry_id: int | None = None,
        definition_id: UUID | None = None,
        relation_name: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[RelationInstance], int]:
        filters = {
            "source_entry_id": source_entry_id,
            "target_entry_id": target_entry_id,
            "definition_id": definition_id,
            "relation_name": relation_name,
        }
        items = await self.relations.list_relations(
            **filters, sort_by=sort_by, descending=descending, limit=limit, offset=offset
        )
        total = await self.relations.count_relations(**filters)
        return items, total

    async def orphaned_ids(self, instances: Sequence[RelationInstance]) -> set[UUID]:
        """Ids of instances whose source or target entry no longer exists."""
        entry_ids = {r.source_entry_id for r in instances} | {
            r.target_entry_id for r in instances
        }
        existing = await self.entries.existing_ids(entry_ids)
        return {
            r.id
            for r in instances
            if r.source_entry_id not in existing or r.target_entry_id not in existing
        }

    async def definitions_for(
        self, instances: Sequence[RelationInstance]
    ) -> dict[UUID, RelationDefinition]:
        return await self.definitions.get_many({r.relation_definition_id for r in instances})

    async def endpoint_entries(
        self, instances: Sequence[RelationInstance]
    ) -> dict[int, ContentEntry]:
        """Source and target entries of the instances that still exist, by id."""
        return await self.entries.get_many(
            {r.source_entry_id for r in instances} | {r.target_entry_id for r in instances}
        )

    async def entry_relations(
        self, entry_id: int, relation_name: str | None = None
    ) -> list[RelationField]:
        """Relations of an entry grouped by field.

        Forward fields come from definitions whose source type is the
        entry's type; reverse fields from bidirectional definitions whose
        target type is.
        """
        entry = await self.entries.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)

        grouped: list[tuple[RelationDefinition, bool, list[RelationInstance]]] = []
        for definition in await self.definitions.list_for_source_type(entry.content_type_id):
            if relation_name is None or definition.name == relation_name:
                instances = await self.relations.list_by_source(definition.id, entry_id)
                grouped.append((definition, False, instances))
        for definition in await self.definitions.list_reverse_for_type(entry.content_type_id):
            if relation_name is None or definition.name == relation_name:
                instances = await self.relations.list_by_target(definition.id, entry_id)
                grouped.append((definition, True, instances))

        related_ids = {
            r.source_entry_id if is_reverse else r.target_entry_id
            for _, is_reverse, instances in grouped
            for r in instances
        }
        related = await self.entries.get_many(related_ids)

        fields: list[RelationField] = []
        for definition, is_reverse, instances in grouped:
            items = []
            for r in instances:
                other = r.source_entry_id if is_reverse else r.target_entry_id
                items.append(RelatedItem(instance=r, entry_id=other, entry=related.get(other)))
            fields.append(
                RelationField(
                    field_name=(
                        definition.target_field_name if is_reverse else definition.source_field_name
                    ),
                    display_name=(
                        f"{definition.display_name} (reverse)"
                        if is_reverse
                        else definition.display_name
                    ),
                    definition=definition,
                    is_reverse=is_reverse,
                    items=items,
                )
            )
        return fields
