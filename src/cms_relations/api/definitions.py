# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.api.pagination import page_limit
from cms_relations.api.relations import limiter, write_rate_limit
from cms_relations.db.session import get_db
from cms_relations.models.relation import RelationType
from cms_relations.schemas.common import PaginatedResponse
from cms_relations.schemas.definition import (
    DefinitionCreate,
    DefinitionResponse,
    DefinitionUpdate,
    DefinitionWithCountsResponse,
)
from cms_relations.services.definitions import DefinitionStore

router = APIRouter(prefix="/relations/definitions", tags=["relation definitions"])


@router.get("", response_model=PaginatedResponse[DefinitionWithCountsResponse])
async def list_definitions(
    source_content_type_id: int | None = Query(None),
    target_content_type_id: int | None = Query(None),
    relation_type: RelationType | None = Query(None),
    is_active: bool | None = Query(None),
    is_bidirectional: bool | None = Query(None),
    search: str | None = Query(None, max_length=200),
    limit: int = Depends(page_limit),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[DefinitionWithCountsResponse]:
    store = DefinitionStore(db)
    definitions, total = await store.list_definitions(
        source_content_type_id=source_content_type_id,
        target_content_type_id=target_content_type_id,
        relation_type=relation_type,
        is_active=is_active,
        is_bidirectional=is_bidirectional,
        search=search,
        limit=limit,
        offset=offset,
    )
    items = [DefinitionWithCountsResponse.from_item(d) for d in definitions]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/{definition_id}", response_model=DefinitionWithCountsResponse)
async def get_definition(
    definition_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> DefinitionWithCountsResponse:
    store = DefinitionStore(db)
    return DefinitionWithCountsResponse.from_item(await store.get_with_counts(definition_id))


@router.post("", response_model=DefinitionResponse, status_code=201)
@limiter.limit(write_rate_limit)
async def create_definition(
    request: Request,
    body: DefinitionCreate,
    db: AsyncSession = Depends(get_db),
) -> DefinitionResponse:
    store = DefinitionStore(db)
    definition = await store.create(body.to_values())
    await db.commit()
    return DefinitionResponse.model_validate(definition)


@router.patch("/{definition_id}", response_model=DefinitionResponse)
@limiter.limit(write_rate_limit)
async def update_definition(
    request: Request,
    definition_id: UUID,
    body: DefinitionUpdate,
    db: AsyncSession = Depends(get_db),
) -> DefinitionResponse:
    store = DefinitionStore(db)
    definition = await store.update(definition_id, body.to_values())
    await db.commit()
    return DefinitionResponse.model_validate(definition)


@router.delete("/{definition_id}", status_code=204)
@limiter.limit(write_rate_limit)
async def delete_definition(
    request: Request,
    definition_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    store = DefinitionStore(db)
    await store.delete(definition_id)
    await db.commit()
