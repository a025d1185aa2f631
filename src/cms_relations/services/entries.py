# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""The slice of the entry store the relation engine depends on."""

from __future__ import annotations

import logging
from collections.abc import Collection

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.errors import NotFoundError, StorageError
from cms_relations.models.content import ContentEntry
from cms_relations.repositories.entry_repository import EntryRepository
from cms_relations.services.cascade import CascadeReport, CascadeResolver

logger = logging.getLogger(__name__)


class EntryStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.entries = EntryRepository(session)
        self.cascade = CascadeResolver(session)

    async def get_entry(self, entry_id: int) -> ContentEntry:
        entry = await self.entries.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError("Entry", entry_id)
        return entry

    async def search_entries(
        self,
        content_type_id: int,
        *,
        search: str | None = None,
        status: str | None = None,
        exclude_ids: Collection[int] = (),
        limit: int = 20,
        offset: int = 0,
    ) -> list[ContentEntry]:
        try:
            return await self.entries.search(
                content_type_id,
                search=search,
                status=status,
                exclude_ids=exclude_ids,
                limit=limit,
                offset=offset,
            )
        except SQLAlchemyError as exc:
            raise StorageError("Entry search failed") from exc

    async def delete_entry(self, entry_id: int) -> CascadeReport:
        """Resolve relation cascades, then delete the entry, in one savepoint."""
        entry = await self.get_entry(entry_id)
        try:
            async with self.session.begin_nested():
                report = await self.cascade.resolve(entry)
                await self.entries.delete(entry)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not delete entry {entry_id}") from exc
        logger.info("Deleted entry %d (%d relation(s) removed)", entry_id, report.deleted)
        return report
