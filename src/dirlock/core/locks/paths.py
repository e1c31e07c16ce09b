"""Lock path derivation and the directory operations the session relies on."""

from __future__ import annotations

import hashlib
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from dirlock.core.constants import DEFAULT_LOCK_ID, DIGEST_LENGTH, LOCK_CACHE_SUBDIR


@dataclass(frozen=True)
class LockIdentity:
    """What is being locked.

    ``lock_id`` separates independent lock domains sharing one directory,
    e.g. a "build" lock and a "generate" lock on the same project.
    """

    working_dir: str
    root: str
    lock_id: str = DEFAULT_LOCK_ID


def digest(value: str) -> str:
    """Stable short hex digest of ``value``."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def create_lock_path(identity: LockIdentity, cache_subdir: str = LOCK_CACHE_SUBDIR) -> Path:
    """Derive the lock directory for ``identity`` without touching the disk.

    Other processes derive the same path to check the lock, so the result
    only depends on the identity fields.
    """
    checksum = digest(f"{identity.root}-{identity.working_dir}")
    lock_id = identity.lock_id or DEFAULT_LOCK_ID
    return Path(os.path.abspath(os.path.join(identity.root, cache_subdir, f"{lock_id}-lock-{checksum}")))


def get_lock_path(identity: LockIdentity, cache_subdir: str = LOCK_CACHE_SUBDIR) -> Path:
    """Derive the lock directory and make sure it exists.

    The primitive creates its lockfile as ``<lock_path>.lock`` and refuses
    to lock a path that does not exist.
    """
    lock_path = create_lock_path(identity, cache_subdir)
    ensure_dir(lock_path)
    return lock_path


def lockfile_for(lock_path: Path) -> Path:
    """The primitive's own lock directory for ``lock_path``."""
    return lock_path.with_name(f"{lock_path.name}.lock")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def remove_dir(path: Path) -> None:
    """Remove ``path`` recursively; a missing path is not an error."""
    if path.is_dir() and not path.is_symlink():
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return
    else:
        path.unlink(missing_ok=True)


def path_exists(path: Path) -> bool:
    return path.exists()
