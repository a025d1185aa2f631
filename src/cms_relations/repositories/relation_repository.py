# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Select, and_, delete, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.models.relation import RelationDefinition, RelationInstance
from cms_relations.repositories.base import BaseRepository


@dataclass(frozen=True, slots=True)
class RelationCounts:
    total_relations: int = 0
    unique_sources: int = 0
    unique_targets: int = 0


class RelationRepository(BaseRepository[RelationInstance]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RelationInstance)

    async def list_by_source(
        self, definition_id: UUID, source_entry_id: int
    ) -> list[RelationInstance]:
        result = await self.session.execute(
            select(RelationInstance)
            .where(
                RelationInstance.relation_definition_id == definition_id,
                RelationInstance.source_entry_id == source_entry_id,
            )
            .order_by(RelationInstance.sort_order, RelationInstance.created_at)
        )
        return list(result.scalars().all())

    async def list_by_target(
        self, definition_id: UUID, target_entry_id: int
    ) -> list[RelationInstance]:
        result = await self.session.execute(
            select(RelationInstance)
            .where(
                RelationInstance.relation_definition_id == definition_id,
                RelationInstance.target_entry_id == target_entry_id,
            )
            .order_by(RelationInstance.sort_order, RelationInstance.created_at)
        )
        return list(result.scalars().all())

    async def bound_sources(
        self,
        definition_id: UUID,
        target_ids: Collection[int],
        *,
        exclude_source_id: int,
    ) -> dict[int, int]:
        """Map each target already held by another source to that source."""
        if not target_ids:
            return {}
        result = await self.session.execute(
            select(RelationInstance.target_entry_id, RelationInstance.source_entry_id).where(
                RelationInstance.relation_definition_id == definition_id,
                RelationInstance.target_entry_id.in_(target_ids),
                RelationInstance.source_entry_id != exclude_source_id,
            )
        )
        return {target: source for target, source in result.all()}

    async def count_for_definition(self, definition_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).where(
                RelationInstance.relation_definition_id == definition_id
            )
        )
        return result.scalar_one()

    async def count_for_entry_side(
        self, definition_id: UUID, entry_id: int, side: str
    ) -> int:
        column = (
            RelationInstance.source_entry_id
            if side == "source"
            else RelationInstance.target_entry_id
        )
        result = await self.session.execute(
            select(func.count()).where(
                RelationInstance.relation_definition_id == definition_id,
                column == entry_id,
            )
        )
        return result.scalar_one()

    async def counts_by_definition(
        self, definition_ids: Collection[UUID]
    ) -> dict[UUID, RelationCounts]:
        if not definition_ids:
            return {}
        result = await self.session.execute(
            select(
                RelationInstance.relation_definition_id,
                func.count(RelationInstance.id),
                func.count(distinct(RelationInstance.source_entry_id)),
                func.count(distinct(RelationInstance.target_entry_id)),
            )
            .where(RelationInstance.relation_definition_id.in_(definition_ids))
            .group_by(RelationInstance.relation_definition_id)
        )
        return {
            definition_id: RelationCounts(total, sources, targets)
            for definition_id, total, sources, targets in result.all()
        }

    def _filtered(
        self,
        stmt: Select,
        *,
        source_entry_id: int | None,
        target_entry_id: int | None,
        definition_id: UUID | None,
        relation_name: str | None,
    ) -> Select:
        if source_entry_id is not None:
            stmt = stmt.where(RelationInstance.source_entry_id == source_entry_id)
        if target_entry_id is not None:
            stmt = stmt.where(RelationInstance.target_entry_id == target_entry_id)
        if definition_id is not None:
            stmt = stmt.where(RelationInstance.relation_definition_id == definition_id)
        if relation_name is not None:
            stmt = stmt.join(
                RelationDefinition,
                RelationDefinition.id == RelationInstance.relation_definition_id,
            ).where(RelationDefinition.name == relation_name)
        return stmt

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
    ) -> list[RelationInstance]:
        stmt = self._filtered(
            select(RelationInstance),
            source_entry_id=source_entry_id,
            target_entry_id=target_entry_id,
            definition_id=definition_id,
            relation_name=relation_name,
        )
        if sort_by == "relation_name":
            if relation_name is None:
                stmt = stmt.join(
                    RelationDefinition,
                    RelationDefinition.id == RelationInstance.relation_definition_id,
                )
            column = RelationDefinition.name
        elif sort_by == "sort_order":
            column = RelationInstance.sort_order
        else:
            column = RelationInstance.created_at
        stmt = stmt.order_by(column.desc() if descending else column.asc(), RelationInstance.id)
        result = await self.session.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def count_relations(
        self,
        *,
        source_entry_id: int | None = None,
        target_entry_id: int | None = None,
        definition_id: UUID | None = None,
        relation_name: str | None = None,
    ) -> int:
        stmt = self._filtered(
            select(func.count(RelationInstance.id)).select_from(RelationInstance),
            source_entry_id=source_entry_id,
            target_entry_id=target_entry_id,
            definition_id=definition_id,
            relation_name=relation_name,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_by_ids(self, instance_ids: Collection[UUID]) -> int:
        if not instance_ids:
            return 0
        result = await self.session.execute(
            delete(RelationInstance)
            .where(RelationInstance.id.in_(instance_ids))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def delete_for_entry(
        self,
        entry_id: int,
        scopes: Iterable[tuple[UUID, str]] | None = None,
    ) -> int:
        """Delete instances where the entry is source or target.

        ``scopes`` narrows the deletion to ``(definition_id, side)`` pairs,
        side being ``"source"`` or ``"target"``. ``None`` means every
        definition on both sides.
        """
        if scopes is None:
            condition = or_(
                RelationInstance.source_entry_id == entry_id,
                RelationInstance.target_entry_id == entry_id,
            )
        else:
            clauses = [
                and_(
                    RelationInstance.relation_definition_id == definition_id,
                    (
                        RelationInstance.source_entry_id
                        if side == "source"
                        else RelationInstance.target_entry_id
                    )
                    == entry_id,
                )
                for definition_id, side in scopes
            ]
            if not clauses:
                return 0
            condition = or_(*clauses)
        result = await self.session.execute(
            delete(RelationInstance)
            .where(condition)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
