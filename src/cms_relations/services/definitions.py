# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Definition store: CRUD for relation definitions with shape validation."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cms_relations.errors import (
    DefinitionInUseError,
    DefinitionValidationError,
    FieldError,
    NotFoundError,
    StorageError,
)
from cms_relations.models.relation import CascadeBehavior, RelationDefinition, RelationType
from cms_relations.repositories.definition_repository import DefinitionRepository
from cms_relations.repositories.entry_repository import EntryRepository
from cms_relations.repositories.relation_repository import RelationCounts, RelationRepository

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-z0-9_]+$")

_DEFAULTS: dict[str, Any] = {
    "description": None,
    "target_field_name": None,
    "relation_type": RelationType.MANY_TO_MANY.value,
    "is_bidirectional": False,
    "is_required": False,
    "on_source_delete": CascadeBehavior.CASCADE.value,
    "on_target_delete": CascadeBehavior.SET_NULL.value,
    "min_relations": 0,
    "max_relations": None,
    "metadata_": {},
    "sort_order": 0,
    "is_active": True,
}

_REQUIRED = (
    "name",
    "display_name",
    "source_content_type_id",
    "source_field_name",
    "target_content_type_id",
)

_EDITABLE = frozenset(_REQUIRED) | frozenset(_DEFAULTS)


@dataclass(frozen=True, slots=True)
class DefinitionWithCounts:
    definition: RelationDefinition
    counts: RelationCounts


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, (RelationType, CascadeBehavior)) else value


class DefinitionStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.definitions = DefinitionRepository(session)
        self.relations = RelationRepository(session)
        self.entries = EntryRepository(session)

    async def get(self, definition_id: UUID) -> RelationDefinition:
        definition = await self.definitions.get_by_id(definition_id)
        if definition is None:
            raise NotFoundError("Relation definition", definition_id)
        return definition

    async def get_with_counts(self, definition_id: UUID) -> DefinitionWithCounts:
        definition = await self.get(definition_id)
        counts = await self.relations.counts_by_definition([definition.id])
        return DefinitionWithCounts(definition, counts.get(definition.id, RelationCounts()))

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
    ) -> tuple[list[DefinitionWithCounts], int]:
        filters: dict[str, Any] = {
            "source_content_type_id": source_content_type_id,
            "target_content_type_id": target_content_type_id,
            "relation_type": _enum_value(relation_type),
            "is_active": is_active,
            "is_bidirectional": is_bidirectional,
            "search": search,
        }
        definitions = await self.definitions.list_definitions(
            **filters, limit=limit, offset=offset
        )
        total = await self.definitions.count_definitions(**filters)
        counts = await self.relations.counts_by_definition([d.id for d in definitions])
        items = [
            DefinitionWithCounts(d, counts.get(d.id, RelationCounts())) for d in definitions
        ]
        return items, total

    async def create(self, values: Mapping[str, Any]) -> RelationDefinition:
        unknown = set(values) - _EDITABLE
        if unknown:
            raise DefinitionValidationError(
                [FieldError(name, "unknown field") for name in sorted(unknown)]
            )
        merged = {**_DEFAULTS, **{k: _enum_value(v) for k, v in values.items()}}
        await self._validate(merged, existing=None)

        definition = RelationDefinition(**merged)
        try:
            await self.definitions.create(definition)
        except SQLAlchemyError as exc:
            raise StorageError("Could not create relation definition") from exc
        logger.info(
            "Created relation definition %s (%s, %s -> %s)",
            definition.name,
            definition.relation_type,
            definition.source_content_type_id,
            definition.target_content_type_id,
        )
        return definition

    async def update(
        self, definition_id: UUID, changes: Mapping[str, Any]
    ) -> RelationDefinition:
        """Apply a partial update; the merged definition is validated as a whole."""
        definition = await self.get(definition_id)
        unknown = set(changes) - _EDITABLE
        if unknown:
            raise DefinitionValidationError(
                [FieldError(name, "unknown field") for name in sorted(unknown)]
            )
        merged = {name: getattr(definition, name) for name in _EDITABLE}
        merged.update({k: _enum_value(v) for k, v in changes.items()})
        await self._validate(merged, existing=definition)

        for name, value in changes.items():
            setattr(definition, name, _enum_value(value))
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise StorageError("Could not update relation definition") from exc
        logger.info(
            "Updated relation definition %s (%s)", definition.name, ", ".join(sorted(changes))
        )
        return definition

    async def delete(self, definition_id: UUID) -> None:
        definition = await self.get(definition_id)
        count = await self.relations.count_for_definition(definition.id)
        if count > 0:
            raise DefinitionInUseError(definition.id, count)
        try:
            await self.definitions.delete(definition)
        except SQLAlchemyError as exc:
            raise StorageError("Could not delete relation definition") from exc
        logger.info("Deleted relation definition %s", definition.name)

    async def _validate(
        self, values: dict[str, Any], *, existing: RelationDefinition | None
    ) -> None:
        errors: list[FieldError] = []

        for name in _REQUIRED:
            if values.get(name) in (None, ""):
                errors.append(FieldError(name, "is required"))
        if errors:
            raise DefinitionValidationError(errors)

        name = values["name"]
        if len(name) > 100 or not NAME_PATTERN.match(name):
            errors.append(
                FieldError(
                    "name",
                    "must contain only lowercase letters, numbers and underscores "
                    "(max 100 characters)",
                )
            )
        else:
            other = await self.definitions.get_by_name(name)
            if other is not None and (existing is None or other.id != existing.id):
                errors.append(FieldError("name", f"'{name}' is already in use"))

        if len(values["display_name"]) > 200:
            errors.append(FieldError("display_name", "must be at most 200 characters"))

        if values["relation_type"] not in {t.value for t in RelationType}:
            errors.append(FieldError("relation_type", "is not a valid relation type"))
        for side in ("on_source_delete", "on_target_delete"):
            if values[side] not in {b.value for b in CascadeBehavior}:
                errors.append(FieldError(side, "is not a valid cascade behavior"))

        min_relations = values["min_relations"]
        max_relations = values["max_relations"]
        if min_relations is None or min_relations < 0:
            errors.append(FieldError("min_relations", "must be 0 or greater"))
        if max_relations is not None:
            if max_relations < 1:
                errors.append(FieldError("max_relations", "must be 1 or greater"))
            elif min_relations is not None and min_relations > max_relations:
                errors.append(
                    FieldError("min_relations", "cannot be greater than max_relations")
                )

        source_type = values["source_content_type_id"]
        target_type = values["target_content_type_id"]
        found = await self.entries.existing_content_type_ids({source_type, target_type})
        if source_type not in found:
            errors.append(FieldError("source_content_type_id", "content type does not exist"))
        if target_type not in found:
            errors.append(FieldError("target_content_type_id", "content type does not exist"))

        source_field = values["source_field_name"]
        clash = await self.definitions.get_by_source_field(source_type, source_field)
        if clash is not None and (existing is None or clash.id != existing.id):
            errors.append(
                FieldError(
                    "source_field_name",
                    f"'{source_field}' is already used by relation {clash.name}",
                )
            )

        if values["is_bidirectional"] and source_type == target_type:
            target_field = values["target_field_name"]
            if not target_field:
                errors.append(
                    FieldError(
                        "target_field_name",
                        "is required for self-referential bidirectional relations",
                    )
                )
            elif target_field == source_field:
                errors.append(
                    FieldError("target_field_name", "must differ from source_field_name")
                )

        if existing is not None and (
            source_type != existing.source_content_type_id
            or target_type != existing.target_content_type_id
        ):
            count = await self.relations.count_for_definition(existing.id)
            if count > 0:
                changed = (
                    "source_content_type_id"
                    if source_type != existing.source_content_type_id
                    else "target_content_type_id"
                )
                errors.append(
                    FieldError(changed, f"cannot change while {count} relations exist")
                )

        if errors:
            raise DefinitionValidationError(errors)
