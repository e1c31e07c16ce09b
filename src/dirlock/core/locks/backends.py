"""File lock primitive backed by atomic ``mkdir``.

Design principles:
- Ownership is defined by who created ``<path>.lock``; ``mkdir`` is atomic
  on local filesystems, so exactly one creator wins.
- Liveness is the lockfile mtime. The holder refreshes it from a daemon
  thread; a lockfile whose mtime is older than the stale threshold may be
  reclaimed by anyone.
- Losing the lock while holding it is reported through ``on_compromised``.
  The lockfile is left on disk in that case since it may belong to the
  process that took it over.
- Lockfiles still held when the process exits (normally or through a
  termination signal) are removed by an exit hook installed on first acquire.
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Protocol

from dirlock.core.constants import (
    DEFAULT_STALE_SECONDS,
    MIN_STALE_SECONDS,
    MIN_UPDATE_SECONDS,
    STALE_RETRY_ATTEMPTS,
)
from dirlock.core.exceptions import LockCompromisedError, LockHeldError, LockReleasedError
from dirlock.core.locks.paths import lockfile_for, remove_dir
from dirlock.core.locks.registry import ExitCallback, install_exit_hook

logger = logging.getLogger(__name__)

CompromisedCallback = Callable[[BaseException], None]
LockRelease = Callable[[], None]


class FileLock(Protocol):
    """Low-level lock primitive consumed by the lock session."""

    def check(self, path: Path, *, stale_seconds: float = DEFAULT_STALE_SECONDS) -> bool:
        """Return True if ``path`` is locked by a live holder. May raise."""

    def acquire(
        self,
        path: Path,
        *,
        stale_seconds: float = DEFAULT_STALE_SECONDS,
        update_seconds: float | None = None,
        on_compromised: CompromisedCallback | None = None,
    ) -> LockRelease:
        """Lock ``path`` without waiting. Raises if the lock cannot be taken."""


def resolve_stale_seconds(stale_seconds: float) -> float:
    """Stale threshold, never below two seconds so one refresh tick always fits."""
    return max(stale_seconds, MIN_STALE_SECONDS)


def resolve_update_seconds(stale_seconds: float, update_seconds: float | None) -> float:
    """Refresh interval: half the stale threshold unless given, kept in [1s, stale/2]."""
    upper = stale_seconds / 2
    if update_seconds is None:
        update_seconds = upper
    return max(MIN_UPDATE_SECONDS, min(update_seconds, upper))


def _log_compromised(error: BaseException) -> None:
    logger.error("%s", error)


@dataclass
class _MkdirLockHandle:
    lock_path: Path
    lockfile: Path
    stale_seconds: float
    update_seconds: float
    on_compromised: CompromisedCallback
    mtime_ns: int
    last_update: float
    released: bool = False
    stop: threading.Event = field(default_factory=threading.Event)
    state_lock: threading.Lock = field(default_factory=threading.Lock)
    thread: threading.Thread | None = None


class MkdirFileLock:
    """Stale-aware lockfile backend using ``mkdir`` plus mtime refresh."""

    name = "mkdir"

    def __init__(self, install_hook: Callable[[ExitCallback], None] | None = None):
        self._install_hook = install_hook
        self._held: dict[Path, _MkdirLockHandle] = {}
        self._held_guard = threading.RLock()
        self._hook_installed = False

    @property
    def held_lockfiles(self) -> frozenset[Path]:
        with self._held_guard:
            return frozenset(self._held)

    def check(self, path: Path, *, stale_seconds: float = DEFAULT_STALE_SECONDS) -> bool:
        # strict resolve: checking a path that does not exist is an error
        lockfile = lockfile_for(Path(path).resolve(strict=True))
        try:
            stat = os.stat(lockfile)
        except FileNotFoundError:
            return False
        return not self._is_stale(stat.st_mtime, resolve_stale_seconds(stale_seconds))

    def acquire(
        self,
        path: Path,
        *,
        stale_seconds: float = DEFAULT_STALE_SECONDS,
        update_seconds: float | None = None,
        on_compromised: CompromisedCallback | None = None,
    ) -> LockRelease:
        stale_seconds = resolve_stale_seconds(stale_seconds)
        lock_path = Path(path).resolve(strict=True)
        lockfile = lockfile_for(lock_path)

        for attempt in range(STALE_RETRY_ATTEMPTS + 1):
            try:
                os.mkdir(lockfile)
                break
            except FileExistsError:
                if attempt < STALE_RETRY_ATTEMPTS and self._reclaim_if_stale(lockfile, stale_seconds):
                    continue
                raise LockHeldError(str(lockfile)) from None

        try:
            mtime_ns = self._touch(lockfile)
        except OSError:
            remove_dir(lockfile)
            raise

        handle = _MkdirLockHandle(
            lock_path=lock_path,
            lockfile=lockfile,
            stale_seconds=stale_seconds,
            update_seconds=resolve_update_seconds(stale_seconds, update_seconds),
            on_compromised=on_compromised or _log_compromised,
            mtime_ns=mtime_ns,
            last_update=time.monotonic(),
        )
        self._track(handle)
        self._start_refresh(handle)
        return partial(self.release, handle)

    def release(self, handle: _MkdirLockHandle) -> None:
        with handle.state_lock:
            if handle.released:
                raise LockReleasedError(str(handle.lock_path))
            handle.released = True
        self._untrack(handle)
        self._stop_refresh(handle)
        remove_dir(handle.lockfile)

    def release_all(self) -> None:
        """Remove every lockfile still held, ignoring errors. Runs at process exit."""
        with self._held_guard:
            handles = list(self._held.values())
            self._held.clear()
        for handle in handles:
            with handle.state_lock:
                if handle.released:
                    continue
                handle.released = True
            handle.stop.set()
            with contextlib.suppress(OSError):
                remove_dir(handle.lockfile)

    def _track(self, handle: _MkdirLockHandle) -> None:
        with self._held_guard:
            if not self._hook_installed:
                (self._install_hook or install_exit_hook)(self.release_all)
                self._hook_installed = True
            self._held[handle.lockfile] = handle

    def _untrack(self, handle: _MkdirLockHandle) -> None:
        with self._held_guard:
            if self._held.get(handle.lockfile) is handle:
                del self._held[handle.lockfile]

    @staticmethod
    def _is_stale(mtime: float, stale_seconds: float) -> bool:
        return time.time() - mtime > stale_seconds

    def _reclaim_if_stale(self, lockfile: Path, stale_seconds: float) -> bool:
        """Remove a stale lockfile. Returns True if acquisition should be retried."""
        try:
            stat = os.stat(lockfile)
        except FileNotFoundError:
            # Released between our mkdir and stat
            return True
        if not self._is_stale(stat.st_mtime, stale_seconds):
            return False
        logger.debug("Reclaiming stale lockfile %s", lockfile)
        remove_dir(lockfile)
        return True

    @staticmethod
    def _touch(lockfile: Path) -> int:
        os.utime(lockfile, None)
        return os.stat(lockfile).st_mtime_ns

    def _start_refresh(self, handle: _MkdirLockHandle) -> None:
        handle.thread = threading.Thread(
            target=self._refresh_loop,
            args=(handle,),
            daemon=True,
            name=f"lock-refresh-{handle.lockfile.name}",
        )
        handle.thread.start()

    @staticmethod
    def _stop_refresh(handle: _MkdirLockHandle) -> None:
        handle.stop.set()
        thread = handle.thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        handle.thread = None

    def _refresh_loop(self, handle: _MkdirLockHandle) -> None:
        while not handle.stop.wait(handle.update_seconds):
            if not self._refresh(handle):
                return

    def _refresh(self, handle: _MkdirLockHandle) -> bool:
        """Refresh the lockfile mtime. Returns False once refreshing must stop."""
        with handle.state_lock:
            if handle.released:
                return False

        if time.monotonic() - handle.last_update > handle.stale_seconds:
            self._compromise(handle, "Unable to update lock within the stale threshold")
            return False

        try:
            stat = os.stat(handle.lockfile)
        except FileNotFoundError:
            self._compromise(handle, "Lockfile was removed while held")
            return False
        except OSError as e:
            # Transient; retried on the next tick until the stale threshold is hit
            logger.debug("Failed to stat %s: %s", handle.lockfile, e)
            return True

        if stat.st_mtime_ns != handle.mtime_ns:
            self._compromise(handle, "Unable to update lock because it was taken over by another process")
            return False

        try:
            mtime_ns = self._touch(handle.lockfile)
        except FileNotFoundError:
            self._compromise(handle, "Lockfile was removed while held")
            return False
        except OSError as e:
            logger.debug("Failed to update mtime of %s: %s", handle.lockfile, e)
            return True

        with handle.state_lock:
            if handle.released:
                return False
            handle.mtime_ns = mtime_ns
            handle.last_update = time.monotonic()
        return True

    def _compromise(self, handle: _MkdirLockHandle, reason: str) -> None:
        with handle.state_lock:
            if handle.released:
                return
            handle.released = True
        self._untrack(handle)
        handle.stop.set()
        try:
            handle.on_compromised(LockCompromisedError(str(handle.lock_path), reason))
        except Exception:
            logger.exception("on_compromised handler failed for %s", handle.lock_path)


_default_file_lock: MkdirFileLock | None = None
_default_file_lock_guard = threading.Lock()


def get_default_file_lock() -> MkdirFileLock:
    """Process-wide primitive, created on first use so one exit hook covers every lock."""
    global _default_file_lock
    with _default_file_lock_guard:
        if _default_file_lock is None:
            _default_file_lock = MkdirFileLock()
        return _default_file_lock
