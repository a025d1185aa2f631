# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.models.content import ContentEntry, ContentType
from cms_relations.repositories.base import BaseRepository


class EntryRepository(BaseRepository[ContentEntry]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ContentEntry)

    async def existing_content_type_ids(self, content_type_ids: Collection[int]) -> set[int]:
        if not content_type_ids:
            return set()
        result = await self.session.execute(
            select(ContentType.id).where(ContentType.id.in_(content_type_ids))
        )
        return set(result.scalars().all())

    async def get_many(self, entry_ids: Collection[int]) -> dict[int, ContentEntry]:
        if not entry_ids:
            return {}
        result = await self.session.execute(
            select(ContentEntry).where(ContentEntry.id.in_(entry_ids))
        )
        return {e.id: e for e in result.scalars().all()}

    async def existing_ids(self, entry_ids: Collection[int]) -> set[int]:
        if not entry_ids:
            return set()
        result = await self.session.execute(
            select(ContentEntry.id).where(ContentEntry.id.in_(entry_ids))
        )
        return set(result.scalars().all())

    async def search(
        self,
        content_type_id: int,
        *,
        search: str | None = None,
        status: str | None = None,
        exclude_ids: Collection[int] = (),
        limit: int = 20,
        offset: int = 0,
    ) -> list[ContentEntry]:
        stmt = select(ContentEntry).where(ContentEntry.content_type_id == content_type_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(ContentEntry.title.ilike(pattern), ContentEntry.slug.ilike(pattern))
            )
        if status is not None:
            stmt = stmt.where(ContentEntry.status == status)
        if exclude_ids:
            stmt = stmt.where(ContentEntry.id.not_in(exclude_ids))
        stmt = (
            stmt.order_by(ContentEntry.updated_at.desc(), ContentEntry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
