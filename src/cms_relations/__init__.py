# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

"""Content relation engine for a headless CMS."""

__version__ = "0.1.0"
