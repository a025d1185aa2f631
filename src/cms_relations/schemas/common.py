# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, JsonValue

JsonObject = dict[str, JsonValue]

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    limit: int
    offset: int


class ErrorResponse(BaseModel):
    detail: str


class FieldErrorResponse(BaseModel):
    field: str
    reason: str


class ValidationErrorResponse(ErrorResponse):
    errors: list[FieldErrorResponse]


class ViolationResponse(BaseModel):
    code: str
    message: str
    field: str | None = None
    target_id: int | None = None
    existing_source_id: int | None = None
    limit: int | None = None


class ConstraintErrorResponse(ErrorResponse):
    violations: list[ViolationResponse]
