# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cms_relations.schemas.common import JsonObject, ViolationResponse

# Clients may send the edge payload as either "relation_data" or "metadata".
_DATA_ALIAS = AliasChoices("relation_data", "metadata")

RelationSortField = Literal["created_at", "sort_order", "relation_name"]


class RelationCreate(BaseModel):
    relation_definition_id: UUID
    source_entry_id: int
    target_entry_id: int
    relation_data: JsonObject = Field(default_factory=dict, validation_alias=_DATA_ALIAS)
    sort_order: int | None = None


class RelationBulkItem(BaseModel):
    source_entry_id: int
    target_entry_id: int
    relation_data: JsonObject | None = Field(default=None, validation_alias=_DATA_ALIAS)
    sort_order: int | None = None


class RelationBulkCreate(BaseModel):
    relation_definition_id: UUID
    relations: list[RelationBulkItem] = Field(min_length=1, max_length=500)


class RelationUpdate(BaseModel):
    relation_data: JsonObject | None = Field(default=None, validation_alias=_DATA_ALIAS)
    sort_order: int | None = None


class EntrySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    content_type_id: int
    title: str
    slug: str
    status: str
    updated_at: datetime


class RelationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    relation_definition_id: UUID
    source_entry_id: int
    target_entry_id: int
    relation_data: JsonObject
    sort_order: int
    created_at: datetime
    updated_at: datetime
    is_orphaned: bool = False
    relation_name: str | None = None
    relation_display_name: str | None = None
    source_entry: EntrySummary | None = None
    target_entry: EntrySummary | None = None


class BulkEdgeErrorResponse(BaseModel):
    index: int
    source_entry_id: int
    target_entry_id: int
    violations: list[ViolationResponse]


class RelationBulkResponse(BaseModel):
    created: list[RelationResponse]
    skipped: list[int]
    errors: list[BulkEdgeErrorResponse]
