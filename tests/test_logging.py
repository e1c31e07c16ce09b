"""Tests for logging helpers"""

from __future__ import annotations

import json
import logging

import pytest

from dirlock.core.logging import ContextLoggerAdapter, JSONFormatter, setup_logging, with_log_context


def test_with_log_context_attaches_fields() -> None:
    base = logging.getLogger("dirlock.tests.context")
    adapter = with_log_context(base, lock_id="build", lock_dir=None)

    assert isinstance(adapter, ContextLoggerAdapter)
    assert adapter.extra == {"lock_id": "build"}

    nested = with_log_context(adapter, lock_dir="/proj/app")
    assert nested.logger is base
    assert nested.extra == {"lock_id": "build", "lock_dir": "/proj/app"}


def test_with_log_context_passes_through_non_loggers() -> None:
    sentinel = object()
    assert with_log_context(sentinel, lock_id="x") is sentinel


def test_json_formatter_includes_context_fields() -> None:
    record = logging.makeLogRecord(
        {"name": "dirlock", "levelname": "WARNING", "levelno": logging.WARNING, "msg": "lost %s", "args": ("lock",)}
    )
    record.lock_id = "nuxt"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "lost lock"
    assert payload["level"] == "WARNING"
    assert payload["lock_id"] == "nuxt"


@pytest.mark.usefixtures("restore_root_logging")
def test_setup_logging_uses_env_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DIRLOCK_LOG_LEVEL", "DEBUG")

    logger = setup_logging()

    assert logger.name == "dirlock"
    assert logging.root.level == logging.DEBUG


@pytest.mark.usefixtures("restore_root_logging")
def test_setup_logging_invalid_level_falls_back_to_info(capsys: pytest.CaptureFixture) -> None:
    setup_logging("LOUD", "json")

    assert logging.root.level == logging.INFO
    assert isinstance(logging.root.handlers[-1].formatter, JSONFormatter)
    assert "Invalid log level" in capsys.readouterr().err
