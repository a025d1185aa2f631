# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Domain exceptions raised by the relation engine.

Services raise these; ``cms_relations.main`` maps them onto HTTP responses.
Every error that describes more than one problem carries a structured list
so the dashboard can render one message per problem.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from cms_relations.services.constraints import Violation


class RelationEngineError(Exception):
    """Base exception for relation engine operations."""


# ---------------------------------------------------------------------------
# Definition errors
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    reason: str


class DefinitionValidationError(RelationEngineError):
    """Raised when a relation definition has an invalid shape."""

    def __init__(self, errors: Sequence[FieldError]) -> None:
        if not errors:
            raise ValueError("DefinitionValidationError requires at least one error")
        self.errors: list[FieldError] = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.reason}" for e in self.errors))

    @classmethod
    def single(cls, field: str, reason: str) -> DefinitionValidationError:
        return cls([FieldError(field, reason)])

    @property
    def field(self) -> str:
        return self.errors[0].field

    @property
    def reason(self) -> str:
        return self.errors[0].reason


class DefinitionInUseError(RelationEngineError):
    """Raised when deleting a definition that still has relation instances."""

    def __init__(self, definition_id: UUID, count: int) -> None:
        super().__init__(
            f"Relation definition {definition_id} has {count} existing relations. "
            "Delete the relations first."
        )
        self.definition_id = definition_id
        self.count = count


# ---------------------------------------------------------------------------
# Instance errors
# ---------------------------------------------------------------------------


class ConstraintViolationError(RelationEngineError):
    """Raised when a proposed edge set breaks one or more relation constraints."""

    def __init__(self, violations: Sequence[Violation]) -> None:
        self.violations: list[Violation] = list(violations)
        super().__init__("; ".join(v.message for v in self.violations))


class ConcurrentEditError(RelationEngineError):
    """Raised when stored relations changed after an edit session was opened."""

    def __init__(self, fields: Sequence[str]) -> None:
        self.fields: list[str] = list(fields)
        super().__init__(
            "Relations were modified by another edit: " + ", ".join(self.fields)
        )


# ---------------------------------------------------------------------------
# Cascade errors
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CascadeBlock:
    """One definition that prevents an entry from being deleted."""

    definition_id: UUID
    display_name: str
    side: str  # "source" or "target"
    count: int


class CascadeRestrictError(RelationEngineError):
    """Raised when a restrict policy blocks an entry deletion.

    ``definition_id`` and ``count`` describe the first blocking definition;
    ``blocking`` lists all of them.
    """

    def __init__(self, entry_id: int, blocking: Sequence[CascadeBlock]) -> None:
        if not blocking:
            raise ValueError("CascadeRestrictError requires at least one block")
        self.entry_id = entry_id
        self.blocking: list[CascadeBlock] = list(blocking)
        first = self.blocking[0]
        self.definition_id = first.definition_id
        self.count = first.count
        super().__init__(
            f"Cannot delete entry {entry_id}: {first.count} related item(s) "
            f"via {first.display_name}"
        )


# ---------------------------------------------------------------------------
# Generic errors
# ---------------------------------------------------------------------------


class NotFoundError(RelationEngineError):
    """Raised when a definition, entry or relation id does not resolve."""

    def __init__(self, resource: str, identifier: object) -> None:
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class StorageError(RelationEngineError):
    """Raised when the database fails. Transient; callers may retry."""
