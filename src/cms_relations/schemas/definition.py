# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cms_relations.models.relation import CascadeBehavior, RelationType
from cms_relations.schemas.common import JsonObject
from cms_relations.services.definitions import DefinitionWithCounts


def _store_values(values: dict[str, Any]) -> dict[str, Any]:
    if "metadata" in values:
        values["metadata_"] = values.pop("metadata")
    return values


class DefinitionCreate(BaseModel):
    # Name format, uniqueness and cross-field rules are checked by the
    # definition store so every problem is reported in one response.
    name: str
    display_name: str
    description: str | None = None
    source_content_type_id: int
    source_field_name: str
    target_content_type_id: int
    target_field_name: str | None = None
    relation_type: RelationType = RelationType.MANY_TO_MANY
    is_bidirectional: bool = False
    is_required: bool = False
    on_source_delete: CascadeBehavior = CascadeBehavior.CASCADE
    on_target_delete: CascadeBehavior = CascadeBehavior.SET_NULL
    min_relations: int = 0
    max_relations: int | None = None
    sort_order: int = 0
    is_active: bool = True
    metadata: JsonObject = {}

    def to_values(self) -> dict[str, Any]:
        return _store_values(self.model_dump())


class DefinitionUpdate(BaseModel):
    name: str | None = None
    display_name: str | None = None
    description: str | None = None
    source_content_type_id: int | None = None
    source_field_name: str | None = None
    target_content_type_id: int | None = None
    target_field_name: str | None = None
    relation_type: RelationType | None = None
    is_bidirectional: bool | None = None
    is_required: bool | None = None
    on_source_delete: CascadeBehavior | None = None
    on_target_delete: CascadeBehavior | None = None
    min_relations: int | None = None
    max_relations: int | None = None
    sort_order: int | None = None
    is_active: bool | None = None
    metadata: JsonObject | None = None

    def to_values(self) -> dict[str, Any]:
        """Only the fields the client sent; explicit nulls included."""
        return _store_values(self.model_dump(exclude_unset=True))


class DefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: str | None
    source_content_type_id: int
    source_field_name: str
    target_content_type_id: int
    target_field_name: str | None
    relation_type: str
    is_bidirectional: bool
    is_required: bool
    on_source_delete: str
    on_target_delete: str
    min_relations: int
    max_relations: int | None
    sort_order: int
    is_active: bool
    # "metadata_" on the ORM model, "metadata" on the wire
    metadata: JsonObject = Field(
        default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: datetime
    updated_at: datetime


class DefinitionWithCountsResponse(DefinitionResponse):
    total_relations: int = 0
    unique_sources: int = 0
    unique_targets: int = 0

    @classmethod
    def from_item(cls, item: DefinitionWithCounts) -> DefinitionWithCountsResponse:
        base = DefinitionResponse.model_validate(item.definition)
        return cls(
            **base.model_dump(),
            total_relations=item.counts.total_relations,
            unique_sources=item.counts.unique_sources,
            unique_targets=item.counts.unique_targets,
        )
