# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

from __future__ import annotations

import logging

import pytest
import structlog
from pydantic import ValidationError

from cms_relations.config import Settings
from cms_relations.logging_config import configure_logging


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(database_url="sqlite+aiosqlite:///:memory:")
        assert settings.default_page_size == 20
        assert settings.max_page_size == 200
        assert settings.relation_optimistic_locking is False
        assert settings.relation_write_rate_limit == "60/minute"
        assert settings.log_format == "json"

    def test_default_page_size_must_fit_max(self) -> None:
        with pytest.raises(ValidationError):
            Settings(
                database_url="sqlite+aiosqlite:///:memory:",
                default_page_size=500,
                max_page_size=200,
            )

    def test_rejects_unknown_log_format(self) -> None:
        with pytest.raises(ValidationError):
            Settings(database_url="sqlite+aiosqlite:///:memory:", log_format="xml")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_installs_single_structlog_handler(self, restore_root_logger: logging.Logger) -> None:
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:", log_level="debug", log_format="console"
        )
        configure_logging(settings)
        assert len(restore_root_logger.handlers) == 1
        handler = restore_root_logger.handlers[0]
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
        assert restore_root_logger.level == logging.DEBUG

    def test_json_lines(
        self, restore_root_logger: logging.Logger, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(Settings(database_url="sqlite+aiosqlite:///:memory:"))
        logging.getLogger("cms_relations.test").info("Replaced %s", "article_tags")
        out = capsys.readouterr().out
        assert '"event": "Replaced article_tags"' in out
        assert '"logger": "cms_relations.test"' in out
        assert '"level": "info"' in out
