# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from collections.abc import Mapping
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.api.pagination import page_limit
from cms_relations.config import get_settings
from cms_relations.db.session import get_db
from cms_relations.models.content import ContentEntry
from cms_relations.models.relation import RelationDefinition, RelationInstance
from cms_relations.schemas.common import PaginatedResponse, ViolationResponse
from cms_relations.schemas.relation import (
    BulkEdgeErrorResponse,
    EntrySummary,
    RelationBulkCreate,
    RelationBulkResponse,
    RelationCreate,
    RelationResponse,
    RelationSortField,
    RelationUpdate,
)
from cms_relations.services.relations import BulkEdge, RelationStore

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/relations", tags=["relations"])


def write_rate_limit() -> str:
    return get_settings().relation_write_rate_limit


def relation_response(
    instance: RelationInstance,
    orphaned: set[UUID] | None = None,
    definitions: Mapping[UUID, RelationDefinition] | None = None,
    entries: Mapping[int, ContentEntry] | None = None,
) -> RelationResponse:
    response = RelationResponse.model_validate(instance)
    if orphaned and instance.id in orphaned:
        response.is_orphaned = True
    if definitions and instance.relation_definition_id in definitions:
        definition = definitions[instance.relation_definition_id]
        response.relation_name = definition.name
        response.relation_display_name = definition.display_name
    if entries is not None:
        source = entries.get(instance.source_entry_id)
        target = entries.get(instance.target_entry_id)
        response.source_entry = EntrySummary.model_validate(source) if source else None
        response.target_entry = EntrySummary.model_validate(target) if target else None
    return response


@router.get("", response_model=PaginatedResponse[RelationResponse])
async def list_relations(
    source_entry_id: int | None = Query(None),
    target_entry_id: int | None = Query(None),
    relation_definition_id: UUID | None = Query(None),
    relation_name: str | None = Query(None),
    include_entries: bool = Query(False),
    sort_by: RelationSortField = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    limit: int = Depends(page_limit),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[RelationResponse]:
    store = RelationStore(db)
    relations, total = await store.list_relations(
        source_entry_id=source_entry_id,
        target_entry_id=target_entry_id,
        definition_id=relation_definition_id,
        relation_name=relation_name,
        sort_by=sort_by,
        descending=sort_order == "desc",
        limit=limit,
        offset=offset,
    )
    orphaned = await store.orphaned_ids(relations)
    definitions = await store.definitions_for(relations)
    entries = await store.endpoint_entries(relations) if include_entries else None
    items = [relation_response(r, orphaned, definitions, entries) for r in relations]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("", response_model=RelationResponse, status_code=201)
@limiter.limit(write_rate_limit)
async def create_relation(
    request: Request,
    body: RelationCreate,
    db: AsyncSession = Depends(get_db),
) -> RelationResponse:
    store = RelationStore(db)
    instance = await store.add(
        body.relation_definition_id,
        body.source_entry_id,
        body.target_entry_id,
        relation_data=body.relation_data,
        sort_order=body.sort_order,
    )
    await db.commit()
    return relation_response(instance)


@router.post("/bulk", response_model=RelationBulkResponse)
@limiter.limit(write_rate_limit)
async def bulk_create_relations(
    request: Request,
    body: RelationBulkCreate,
    db: AsyncSession = Depends(get_db),
) -> RelationBulkResponse:
    store = RelationStore(db)
    result = await store.bulk_create(
        body.relation_definition_id,
        [
            BulkEdge(
                source_entry_id=item.source_entry_id,
                target_entry_id=item.target_entry_id,
                relation_data=item.relation_data,
                sort_order=item.sort_order,
            )
            for item in body.relations
        ],
    )
    await db.commit()
    return RelationBulkResponse(
        created=[relation_response(r) for r in result.created],
        skipped=result.skipped,
        errors=[
            BulkEdgeErrorResponse(
                index=e.index,
                source_entry_id=e.source_entry_id,
                target_entry_id=e.target_entry_id,
                violations=[ViolationResponse(**v.to_dict()) for v in e.violations],
            )
            for e in result.errors
        ],
    )


@router.get("/{relation_id}", response_model=RelationResponse)
async def get_relation(
    relation_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> RelationResponse:
    store = RelationStore(db)
    instance = await store.get(relation_id)
    return relation_response(instance, await store.orphaned_ids([instance]))


@router.patch("/{relation_id}", response_model=RelationResponse)
@limiter.limit(write_rate_limit)
async def update_relation(
    request: Request,
    relation_id: UUID,
    body: RelationUpdate,
    db: AsyncSession = Depends(get_db),
) -> RelationResponse:
    store = RelationStore(db)
    instance = await store.update(
        relation_id, relation_data=body.relation_data, sort_order=body.sort_order
    )
    await db.commit()
    return relation_response(instance)


@router.delete("/{relation_id}", status_code=204)
@limiter.limit(write_rate_limit)
async def delete_relation(
    request: Request,
    relation_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    store = RelationStore(db)
    await store.remove(relation_id)
    await db.commit()
