"""
dirlock - Advisory cross-process locks for shared working directories

Lets independent process invocations (builds, generators, dev servers)
coordinate exclusive use of a cache or temp directory through the
filesystem alone, with stale-lock detection and cleanup on exit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "__version__",
    "LockIdentity",
    "LockOptions",
    "LockSession",
    "ReleaseStatus",
    "acquire_lock",
    "main",
]

if TYPE_CHECKING:
    from dirlock.cli.main import main
    from dirlock.core.locks import LockIdentity, LockOptions, LockSession, ReleaseStatus, acquire_lock
    from dirlock.core.version import __version__


def __getattr__(name: str) -> Any:
    if name == "__version__":
        from dirlock.core import version

        return version.__version__
    if name == "main":
        from dirlock.cli.main import main

        return main
    if name in __all__:
        from dirlock.core import locks

        return getattr(locks, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
