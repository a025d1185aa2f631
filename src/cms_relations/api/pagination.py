# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from fastapi import Query

from cms_relations.config import get_settings


def page_limit(limit: int | None = Query(None, ge=1)) -> int:
    """Requested page size, defaulted and capped by settings."""
    settings = get_settings()
    if limit is None:
        return settings.default_page_size
    return min(limit, settings.max_page_size)
