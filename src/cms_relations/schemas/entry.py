# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from cms_relations.schemas.common import JsonObject
from cms_relations.schemas.relation import EntrySummary, RelationResponse


class RelatedEntryResponse(BaseModel):
    relation: RelationResponse
    entry_id: int
    entry: EntrySummary | None
    is_orphaned: bool


class RelationFieldResponse(BaseModel):
    field_name: str
    display_name: str
    relation_definition_id: UUID
    relation_name: str
    relation_type: str
    is_reverse: bool
    items: list[RelatedEntryResponse]


class EntryRelationsResponse(BaseModel):
    entry_id: int
    fields: list[RelationFieldResponse]


class FieldUpdate(BaseModel):
    target_ids: list[int]
    # Keyed by target entry id
    relation_data: dict[int, JsonObject] | None = Field(
        default=None, validation_alias=AliasChoices("relation_data", "metadata")
    )


class EntryRelationsUpdate(BaseModel):
    """Staged values for one or more relation fields, saved together."""

    fields: dict[str, FieldUpdate] = Field(min_length=1)


class FieldCommitResult(BaseModel):
    added: list[int]
    removed: list[int]
    retained: list[int]


class EntryRelationsCommitResponse(BaseModel):
    entry_id: int
    results: dict[str, FieldCommitResult]


class CandidatePageResponse(BaseModel):
    items: list[EntrySummary]
    page: int
    limit: int
    has_more: bool
    remaining_capacity: int | None
    current_count: int


class EntryDeleteResponse(BaseModel):
    entry_id: int
    deleted_relations: int
    dangling_relations: int
