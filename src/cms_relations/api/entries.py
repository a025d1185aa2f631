# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.api.pagination import page_limit
from cms_relations.api.relations import limiter, relation_response, write_rate_limit
from cms_relations.config import get_settings
from cms_relations.db.session import get_db
from cms_relations.schemas.entry import (
    CandidatePageResponse,
    EntryDeleteResponse,
    EntryRelationsCommitResponse,
    EntryRelationsResponse,
    EntryRelationsUpdate,
    FieldCommitResult,
    RelatedEntryResponse,
    RelationFieldResponse,
)
from cms_relations.schemas.relation import EntrySummary
from cms_relations.services.batch import BatchCommitCoordinator
from cms_relations.services.entries import EntryStore
from cms_relations.services.picker import CandidateFilters, CandidatePicker
from cms_relations.services.relations import RelationStore

router = APIRouter(prefix="/entries", tags=["entries"])


@router.get("/{entry_id}/relations", response_model=EntryRelationsResponse)
async def get_entry_relations(
    entry_id: int,
    relation_name: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> EntryRelationsResponse:
    store = RelationStore(db)
    fields = await store.entry_relations(entry_id, relation_name)
    return EntryRelationsResponse(
        entry_id=entry_id,
        fields=[
            RelationFieldResponse(
                field_name=f.field_name,
                display_name=f.display_name,
                relation_definition_id=f.definition.id,
                relation_name=f.definition.name,
                relation_type=f.definition.relation_type,
                is_reverse=f.is_reverse,
                items=[
                    RelatedEntryResponse(
                        relation=relation_response(item.instance),
                        entry_id=item.entry_id,
                        entry=(
                            EntrySummary.model_validate(item.entry)
                            if item.entry is not None
                            else None
                        ),
                        is_orphaned=item.is_orphaned,
                    )
                    for item in f.items
                ],
            )
            for f in fields
        ],
    )


@router.put("/{entry_id}/relations", response_model=EntryRelationsCommitResponse)
@limiter.limit(write_rate_limit)
async def save_entry_relations(
    request: Request,
    entry_id: int,
    body: EntryRelationsUpdate,
    db: AsyncSession = Depends(get_db),
) -> EntryRelationsCommitResponse:
    """Save several relation fields of one entry as a single unit."""
    coordinator = BatchCommitCoordinator(
        RelationStore(db),
        optimistic_locking=get_settings().relation_optimistic_locking,
    )
    edit = await coordinator.open(entry_id)
    for field_name, update in body.fields.items():
        coordinator.stage(edit, field_name, update.target_ids, update.relation_data)
    result = await coordinator.commit_all(edit)
    await db.commit()
    return EntryRelationsCommitResponse(
        entry_id=entry_id,
        results={
            name: FieldCommitResult(
                added=r.added, removed=r.removed, retained=r.retained
            )
            for name, r in result.results.items()
        },
    )


@router.delete("/{entry_id}", response_model=EntryDeleteResponse)
@limiter.limit(write_rate_limit)
async def delete_entry(
    request: Request,
    entry_id: int,
    db: AsyncSession = Depends(get_db),
) -> EntryDeleteResponse:
    store = EntryStore(db)
    report = await store.delete_entry(entry_id)
    await db.commit()
    return EntryDeleteResponse(
        entry_id=entry_id,
        deleted_relations=report.deleted,
        dangling_relations=report.dangling,
    )


@router.get("/{entry_id}/candidates", response_model=CandidatePageResponse)
async def list_candidates(
    entry_id: int,
    relation_definition_id: UUID = Query(...),
    search: str | None = Query(None, max_length=200),
    status: str | None = Query(None),
    exclude_ids: list[int] = Query([]),
    exclude_related: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Depends(page_limit),
    db: AsyncSession = Depends(get_db),
) -> CandidatePageResponse:
    picker = CandidatePicker(
        RelationStore(db), timeout_seconds=get_settings().search_timeout_seconds
    )
    result = await picker.search(
        relation_definition_id,
        entry_id,
        CandidateFilters(
            search=search,
            status=status,
            exclude_ids=frozenset(exclude_ids),
            exclude_related=exclude_related,
        ),
        page=page,
        limit=limit,
    )
    return CandidatePageResponse(
        items=[EntrySummary.model_validate(e) for e in result.entries],
        page=page,
        limit=limit,
        has_more=result.has_more,
        remaining_capacity=result.remaining_capacity,
        current_count=result.current_count,
    )
