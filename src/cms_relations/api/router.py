# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from fastapi import APIRouter

from cms_relations.api.definitions import router as definitions_router
from cms_relations.api.entries import router as entries_router
from cms_relations.api.relations import router as relations_router

v1_router = APIRouter()
# /relations/definitions must be registered ahead of /relations/{relation_id}
v1_router.include_router(definitions_router)
v1_router.include_router(relations_router)
v1_router.include_router(entries_router)
