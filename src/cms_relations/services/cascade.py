# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Cascade resolution for entry deletion.

The resolver plans the effect of deleting one entry on every active
definition that touches its content type, then applies the plan. A
``restrict`` side with referencing instances aborts the whole plan before
anything is deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.errors import CascadeBlock, CascadeRestrictError, StorageError
from cms_relations.models.content import ContentEntry
from cms_relations.models.relation import CascadeBehavior, RelationDefinition
from cms_relations.repositories.definition_repository import DefinitionRepository
from cms_relations.repositories.relation_repository import RelationRepository

logger = logging.getLogger(__name__)

SOURCE = "source"
TARGET = "target"


@dataclass(frozen=True, slots=True)
class CascadeStep:
    definition: RelationDefinition
    side: str
    behavior: CascadeBehavior
    count: int


@dataclass(slots=True)
class CascadePlan:
    entry_id: int
    steps: list[CascadeStep] = field(default_factory=list)

    @property
    def blocking(self) -> list[CascadeStep]:
        return [s for s in self.steps if s.behavior is CascadeBehavior.RESTRICT]

    @property
    def deletions(self) -> list[CascadeStep]:
        # set_null has the same storage effect as cascade: an edge row has
        # no nullable endpoint to clear.
        return [
            s
            for s in self.steps
            if s.behavior in (CascadeBehavior.CASCADE, CascadeBehavior.SET_NULL)
        ]

    @property
    def dangling(self) -> list[CascadeStep]:
        return [s for s in self.steps if s.behavior is CascadeBehavior.NO_ACTION]


@dataclass(frozen=True, slots=True)
class CascadeReport:
    entry_id: int
    deleted: int
    dangling: int
    by_definition: dict[UUID, int]


class CascadeResolver:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.definitions = DefinitionRepository(session)
        self.relations = RelationRepository(session)

    async def plan(self, entry: ContentEntry) -> CascadePlan:
        """Collect every side of every active definition referencing the entry.

        Sides without referencing instances are left out. Self-referential
        definitions contribute both sides.
        """
        plan = CascadePlan(entry_id=entry.id)
        for definition in await self.definitions.list_touching_type(entry.content_type_id):
            sides: list[tuple[str, str]] = []
            if definition.source_content_type_id == entry.content_type_id:
                sides.append((SOURCE, definition.on_source_delete))
            if definition.target_content_type_id == entry.content_type_id:
                sides.append((TARGET, definition.on_target_delete))
            for side, behavior in sides:
                count = await self.relations.count_for_entry_side(definition.id, entry.id, side)
                if count:
                    plan.steps.append(
                        CascadeStep(definition, side, CascadeBehavior(behavior), count)
                    )
        return plan

    async def resolve(self, entry: ContentEntry) -> CascadeReport:
        """Apply cascade behaviors for an entry about to be deleted.

        Raises ``CascadeRestrictError`` listing every blocking definition if
        any ``restrict`` side still has instances; nothing is deleted then.
        """
        plan = await self.plan(entry)

        if plan.blocking:
            logger.info(
                "Deletion of entry %d blocked by %s",
                entry.id,
                ", ".join(s.definition.name for s in plan.blocking),
            )
            raise CascadeRestrictError(
                entry.id,
                [
                    CascadeBlock(
                        definition_id=s.definition.id,
                        display_name=s.definition.display_name,
                        side=s.side,
                        count=s.count,
                    )
                    for s in plan.blocking
                ],
            )

        deleted = 0
        by_definition: dict[UUID, int] = {}
        if plan.deletions:
            try:
                deleted = await self.relations.delete_for_entry(
                    entry.id, [(s.definition.id, s.side) for s in plan.deletions]
                )
            except SQLAlchemyError as exc:
                raise StorageError(f"Could not cascade deletion of entry {entry.id}") from exc
            for step in plan.deletions:
                by_definition[step.definition.id] = (
                    by_definition.get(step.definition.id, 0) + step.count
                )

        dangling = sum(s.count for s in plan.dangling)
        logger.info(
            "Cascade for entry %d: deleted=%d dangling=%d definitions=%d",
            entry.id,
            deleted,
            dangling,
            len(plan.steps),
        )
        return CascadeReport(
            entry_id=entry.id,
            deleted=deleted,
            dangling=dangling,
            by_definition=by_definition,
        )
