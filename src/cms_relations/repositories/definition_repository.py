# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.models.relation import RelationDefinition
from cms_relations.repositories.base import BaseRepository


class DefinitionRepository(BaseRepository[RelationDefinition]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RelationDefinition)

    async def get_by_name(self, name: str) -> RelationDefinition | None:
        result = await self.session.execute(
            select(RelationDefinition).where(RelationDefinition.name == name)
        )
        return result.scalar_one_or_none()

    async def get_many(self, definition_ids: Collection[UUID]) -> dict[UUID, RelationDefinition]:
        if not definition_ids:
            return {}
        result = await self.session.execute(
            select(RelationDefinition).where(RelationDefinition.id.in_(definition_ids))
        )
        return {d.id: d for d in result.scalars().all()}

    async def get_by_source_field(
        self, content_type_id: int, field_name: str
    ) -> RelationDefinition | None:
        result = await self.session.execute(
            select(RelationDefinition).where(
                RelationDefinition.source_content_type_id == content_type_id,
                RelationDefinition.source_field_name == field_name,
            )
        )
        return result.scalar_one_or_none()

    def _filtered(
        self,
        stmt: Select,
        *,
        source_content_type_id: int | None,
        target_content_type_id: int | None,
        relation_type: str | None,
        is_active: bool | None,
        is_bidirectional: bool | None,
        search: str | None,
    ) -> Select:
        if source_content_type_id is not None:
            stmt = stmt.where(
                RelationDefinition.source_content_type_id == source_content_type_id
            )
        if target_content_type_id is not None:
            stmt = stmt.where(
                RelationDefinition.target_content_type_id == target_content_type_id
            )
        if relation_type is not None:
            stmt = stmt.where(RelationDefinition.relation_type == relation_type)
        if is_active is not None:
            stmt = stmt.where(RelationDefinition.is_active.is_(is_active))
        if is_bidirectional is not None:
            stmt = stmt.where(RelationDefinition.is_bidirectional.is_(is_bidirectional))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    RelationDefinition.name.ilike(pattern),
                    RelationDefinition.display_name.ilike(pattern),
                    RelationDefinition.description.ilike(pattern),
                )
            )
        return stmt

    async def list_definitions(
        self,
        *,
        source_content_type_id: int | None = None,
        target_content_type_id: int | None = None,
        relation_type: str | None = None,
        is_active: bool | None = None,
        is_bidirectional: bool | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RelationDefinition]:
        stmt = self._filtered(
            select(RelationDefinition),
            source_content_type_id=source_content_type_id,
            target_content_type_id=target_content_type_id,
            relation_type=relation_type,
            is_active=is_active,
            is_bidirectional=is_bidirectional,
            search=search,
        )
        stmt = (
            stmt.order_by(
                RelationDefinition.sort_order.asc(),
                RelationDefinition.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_definitions(
        self,
        *,
        source_content_type_id: int | None = None,
        target_content_type_id: int | None = None,
        relation_type: str | None = None,
        is_active: bool | None = None,
        is_bidirectional: bool | None = None,
        search: str | None = None,
    ) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(RelationDefinition),
            source_content_type_id=source_content_type_id,
            target_content_type_id=target_content_type_id,
            relation_type=relation_type,
            is_active=is_active,
            is_bidirectional=is_bidirectional,
            search=search,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_for_source_type(
        self, content_type_id: int, *, active_only: bool = True
    ) -> list[RelationDefinition]:
        stmt = select(RelationDefinition).where(
            RelationDefinition.source_content_type_id == content_type_id
        )
        if active_only:
            stmt = stmt.where(RelationDefinition.is_active.is_(True))
        stmt = stmt.order_by(RelationDefinition.sort_order, RelationDefinition.name)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_reverse_for_type(self, content_type_id: int) -> list[RelationDefinition]:
        """Active bidirectional definitions whose target side is this type."""
        result = await self.session.execute(
            select(RelationDefinition)
            .where(
                RelationDefinition.target_content_type_id == content_type_id,
                RelationDefinition.is_active.is_(True),
                RelationDefinition.is_bidirectional.is_(True),
                RelationDefinition.target_field_name.is_not(None),
            )
            .order_by(RelationDefinition.sort_order, RelationDefinition.name)
        )
        return list(result.scalars().all())

    async def list_touching_type(
        self, content_type_id: int, *, active_only: bool = True
    ) -> list[RelationDefinition]:
        stmt = select(RelationDefinition).where(
            (RelationDefinition.source_content_type_id == content_type_id)
            | (RelationDefinition.target_content_type_id == content_type_id)
        )
        if active_only:
            stmt = stmt.where(RelationDefinition.is_active.is_(True))
        stmt = stmt.order_by(RelationDefinition.sort_order, RelationDefinition.name)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
