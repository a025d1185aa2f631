# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Constraint validation for proposed relation edge sets.

``validate`` is pure: it receives the definition, the proposed ordered
target list and the targets already held by other sources, and returns
every rule the proposal breaks. Loading ``bound_sources`` is the caller's
job.
"""

from __future__ import annotations

import enum
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Protocol

from cms_relations.models.relation import RelationType


class ViolationCode(str, enum.Enum):
    MAX_RELATIONS_EXCEEDED = "max_relations_exceeded"
    MIN_RELATIONS_NOT_MET = "min_relations_not_met"
    REQUIRED_RELATION_MISSING = "required_relation_missing"
    CARDINALITY_VIOLATION = "cardinality_violation"
    TARGET_ALREADY_BOUND = "target_already_bound"
    SELF_REFERENCE_NOT_ALLOWED = "self_reference_not_allowed"
    DUPLICATE_TARGET = "duplicate_target"
    SOURCE_NOT_FOUND = "source_not_found"
    TARGET_NOT_FOUND = "target_not_found"
    CONTENT_TYPE_MISMATCH = "content_type_mismatch"


@dataclass(frozen=True, slots=True)
class Violation:
    code: ViolationCode
    message: str
    field: str | None = None
    target_id: int | None = None
    existing_source_id: int | None = None
    limit: int | None = None

    def for_field(self, field: str) -> Violation:
        """Return a copy tagged with the relation field it belongs to."""
        return replace(self, field=field)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"code": self.code.value, "message": self.message}
        for key in ("field", "target_id", "existing_source_id", "limit"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


class ConstrainedDefinition(Protocol):
    relation_type: str
    is_required: bool
    min_relations: int
    max_relations: int | None


def validate(
    definition: ConstrainedDefinition,
    source_entry_id: int,
    proposed_target_ids: Sequence[int],
    bound_sources: Mapping[int, int],
) -> list[Violation]:
    """Check a proposed edge set for one source entry under one definition.

    ``bound_sources`` maps target ids to the source entry that currently
    holds them under the same definition. Entries mapping to
    ``source_entry_id`` itself are ignored.
    """
    violations: list[Violation] = []
    count = len(proposed_target_ids)
    relation_type = RelationType(definition.relation_type)
    min_relations = definition.min_relations or 0
    max_relations = definition.max_relations

    if max_relations is not None and count > max_relations:
        violations.append(
            Violation(
                ViolationCode.MAX_RELATIONS_EXCEEDED,
                f"At most {max_relations} relation(s) allowed, got {count}",
                limit=max_relations,
            )
        )

    if count < min_relations:
        violations.append(
            Violation(
                ViolationCode.MIN_RELATIONS_NOT_MET,
                f"At least {min_relations} relation(s) required, got {count}",
                limit=min_relations,
            )
        )

    if definition.is_required and count == 0:
        violations.append(
            Violation(
                ViolationCode.REQUIRED_RELATION_MISSING,
                "This relation is required",
            )
        )

    if relation_type is RelationType.ONE_TO_ONE and count > 1:
        violations.append(
            Violation(
                ViolationCode.CARDINALITY_VIOLATION,
                f"A one-to-one relation holds a single target, got {count}",
                limit=1,
            )
        )

    if relation_type in (RelationType.ONE_TO_ONE, RelationType.ONE_TO_MANY):
        reported: set[int] = set()
        for target_id in proposed_target_ids:
            existing = bound_sources.get(target_id)
            if existing is None or existing == source_entry_id or target_id in reported:
                continue
            reported.add(target_id)
            violations.append(
                Violation(
                    ViolationCode.TARGET_ALREADY_BOUND,
                    f"Entry {target_id} is already related to entry {existing}",
                    target_id=target_id,
                    existing_source_id=existing,
                )
            )

    if source_entry_id in proposed_target_ids:
        violations.append(
            Violation(
                ViolationCode.SELF_REFERENCE_NOT_ALLOWED,
                "An entry cannot be related to itself",
                target_id=source_entry_id,
            )
        )

    for target_id, occurrences in Counter(proposed_target_ids).items():
        if occurrences > 1:
            violations.append(
                Violation(
                    ViolationCode.DUPLICATE_TARGET,
                    f"Entry {target_id} is listed {occurrences} times",
                    target_id=target_id,
                )
            )

    return violations
