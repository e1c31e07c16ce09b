"""Locking subsystem for cross-process coordination.

This package centralizes lock path derivation, the file lock primitive,
the per-process registry of held locks and the session that ties them
together, so callers only need ``acquire_lock``.
"""

from dirlock.core.locks.backends import FileLock, MkdirFileLock, get_default_file_lock
from dirlock.core.locks.paths import LockIdentity, create_lock_path, digest, get_lock_path
from dirlock.core.locks.registry import LockRegistry, get_default_registry, install_exit_hook
from dirlock.core.locks.session import (
    DEFAULT_LOCK_OPTIONS,
    LockOptions,
    LockSession,
    LockState,
    ProbeStatus,
    ReleaseStatus,
    acquire_lock,
    get_lock_options,
)

__all__ = [
    "DEFAULT_LOCK_OPTIONS",
    "FileLock",
    "LockIdentity",
    "LockOptions",
    "LockRegistry",
    "LockSession",
    "LockState",
    "MkdirFileLock",
    "ProbeStatus",
    "ReleaseStatus",
    "acquire_lock",
    "create_lock_path",
    "digest",
    "get_default_file_lock",
    "get_default_registry",
    "get_lock_options",
    "get_lock_path",
    "install_exit_hook",
]
