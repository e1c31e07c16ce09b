"""Tests for the dirlock command line"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

import dirlock.cli.main as cli_main
import dirlock.core.config as config_module
import dirlock.core.locks.registry as registry_module
from dirlock.core.locks import LockIdentity, LockRegistry, LockSession, create_lock_path


@pytest.fixture(autouse=True)
def _quiet_cli(monkeypatch: pytest.MonkeyPatch, hook_recorder) -> None:
    monkeypatch.setattr(cli_main, "setup_logging", lambda *args: logging.getLogger("dirlock"))
    monkeypatch.setattr(config_module, "load_dotenv", lambda: False)
    monkeypatch.setattr(registry_module, "_default_registry", LockRegistry(install_hook=hook_recorder))
    for name in ("DIRLOCK_STALE_SECONDS", "DIRLOCK_UPDATE_SECONDS", "DIRLOCK_DEFAULT_ID", "DIRLOCK_CACHE_SUBDIR"):
        monkeypatch.delenv(name, raising=False)


def _identity(project_root: Path, lock_id: str = "nuxt") -> LockIdentity:
    return LockIdentity(working_dir=str(project_root / "app"), root=str(project_root), lock_id=lock_id)


def test_path_prints_derived_lock_path(project_root: Path, capsys: pytest.CaptureFixture) -> None:
    exit_code = cli_main.main(["path", "--root", str(project_root), "--dir", "app", "--id", "build"])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == str(create_lock_path(_identity(project_root, "build")))


def test_check_reports_free_when_never_locked(project_root: Path, capsys: pytest.CaptureFixture) -> None:
    exit_code = cli_main.main(["check", "--root", str(project_root), "--dir", "app"])

    assert exit_code == cli_main.EXIT_FREE
    assert capsys.readouterr().out.startswith("free ")


def test_check_reports_locked_while_held(
    project_root: Path, registry: LockRegistry, capsys: pytest.CaptureFixture
) -> None:
    with LockSession(_identity(project_root), registry=registry) as session:
        assert session.acquired
        exit_code = cli_main.main(["check", "--root", str(project_root), "--dir", "app"])

    assert exit_code == cli_main.EXIT_LOCKED
    assert capsys.readouterr().out.startswith("locked ")


def test_run_returns_command_status_and_releases(project_root: Path) -> None:
    exit_code = cli_main.main(
        ["run", "--root", str(project_root), "--dir", "app", "--", sys.executable, "-c", "import sys; sys.exit(3)"]
    )

    assert exit_code == 3
    lock_path = create_lock_path(_identity(project_root))
    assert not lock_path.exists()
    assert not lock_path.with_name(f"{lock_path.name}.lock").exists()


def test_run_still_runs_command_when_lock_is_taken(project_root: Path, registry: LockRegistry, tmp_path: Path) -> None:
    marker = tmp_path / "ran"
    with LockSession(_identity(project_root), registry=registry):
        exit_code = cli_main.main(
            [
                "run",
                "--root",
                str(project_root),
                "--dir",
                "app",
                "--",
                sys.executable,
                "-c",
                f"open({str(marker)!r}, 'w').close()",
            ]
        )

    assert exit_code == 0
    assert marker.exists()


def test_run_requires_command(project_root: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli_main.parse_arguments(["run", "--root", str(project_root)])
    assert exc_info.value.code == 2


def test_invalid_stale_override_is_rejected(project_root: Path) -> None:
    exit_code = cli_main.main(["check", "--root", str(project_root), "--stale", "0"])
    assert exit_code == cli_main.EXIT_UNKNOWN
