"""Pytest configuration and fixtures for dirlock tests"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

import dirlock.core.locks.backends as backends_module
from dirlock.core.locks import LockIdentity, LockRegistry


class HookRecorder:
    """Stands in for the real exit hook installer so tests never touch atexit or signals."""

    def __init__(self) -> None:
        self.callbacks: list = []

    def __call__(self, callback) -> None:
        self.callbacks.append(callback)

    def fire(self) -> None:
        for callback in self.callbacks:
            callback()


@pytest.fixture
def hook_recorder() -> HookRecorder:
    return HookRecorder()


@pytest.fixture
def file_lock_hooks() -> HookRecorder:
    return HookRecorder()


@pytest.fixture(autouse=True)
def _record_file_lock_exit_hooks(monkeypatch: pytest.MonkeyPatch, file_lock_hooks: HookRecorder) -> None:
    """Keep the default lock primitive from installing real atexit and signal hooks"""
    monkeypatch.setattr(backends_module, "install_exit_hook", file_lock_hooks)
    monkeypatch.setattr(backends_module, "_default_file_lock", None)


@pytest.fixture
def registry(hook_recorder: HookRecorder) -> LockRegistry:
    """Isolated registry whose exit hook is recorded instead of installed"""
    return LockRegistry(install_hook=hook_recorder)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "app").mkdir(parents=True)
    return root


@pytest.fixture
def identity(project_root: Path) -> LockIdentity:
    return LockIdentity(working_dir=str(project_root / "app"), root=str(project_root))


@pytest.fixture
def restore_root_logging(monkeypatch: pytest.MonkeyPatch):
    """Give setup_logging an empty root handler list and drop what it adds"""
    level = logging.root.level
    monkeypatch.setattr(logging.root, "handlers", [])
    yield
    for handler in logging.root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            handler.close()
            logging.root.removeHandler(handler)
    logging.root.setLevel(level)
