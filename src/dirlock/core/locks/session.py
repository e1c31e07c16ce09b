"""Lock session: probe, acquire and release one working-directory lock.

Locking is advisory. Nothing in this module raises to the caller: a lock
that cannot be obtained is reported as a warning and ``acquire_lock``
returns False so the caller carries on without mutual exclusion.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from dirlock.core.config import DEFAULT_LOCK_CONFIG, LockConfig
from dirlock.core.logging import with_log_context
from dirlock.core.locks.backends import CompromisedCallback, FileLock, LockRelease, get_default_file_lock
from dirlock.core.locks.paths import LockIdentity, get_lock_path, lockfile_for, path_exists, remove_dir
from dirlock.core.locks.registry import LockRegistry, get_default_registry


class LockState(Enum):
    """Lifecycle of a lock session."""

    UNACQUIRED = "unacquired"
    PROBING = "probing"
    ACQUIRING = "acquiring"
    HELD = "held"
    FAILED = "failed"
    COMPROMISED = "compromised"  # Lost while held; still needs release
    RELEASED = "released"


class ProbeStatus(Enum):
    """Outcome of checking for an existing lock before acquiring."""

    UNLOCKED = "unlocked"
    LOCKED = "locked"
    UNKNOWN = "unknown"  # The check itself failed


class ReleaseStatus(Enum):
    """Outcome of a release call."""

    RELEASED = "released"
    ALREADY_RELEASED = "already_released"
    NOT_HELD = "not_held"
    RECOVERED = "recovered"  # Compromised lock; leftover lockfile cleaned up
    FAILED = "failed"  # Error logged at debug level and swallowed


@dataclass
class LockOptions:
    """Options passed to the file lock primitive.

    Attributes:
        stale_seconds: Lock is stale after this long without refresh (default: 30.0)
        update_seconds: Refresh interval; None lets the primitive pick stale / 2
        on_compromised: Called with the error when the lock is lost while held
    """

    stale_seconds: float | None = None
    update_seconds: float | None = None
    on_compromised: CompromisedCallback | None = None


def default_lock_options(
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    config: LockConfig = DEFAULT_LOCK_CONFIG,
) -> LockOptions:
    log = logger or logging.getLogger(__name__)

    def _warn_compromised(error: BaseException) -> None:
        log.warning(f"{error}")

    return LockOptions(
        stale_seconds=config.stale_seconds,
        update_seconds=config.update_seconds,
        on_compromised=_warn_compromised,
    )


DEFAULT_LOCK_OPTIONS = default_lock_options()


def get_lock_options(
    options: LockOptions | Mapping[str, Any] | None,
    defaults: LockOptions = DEFAULT_LOCK_OPTIONS,
) -> LockOptions:
    """Merge caller options over ``defaults``; unset (None) values fall back."""
    if options is None:
        return replace(defaults)
    if isinstance(options, Mapping):
        options = LockOptions(**options)
    overrides = {f.name: getattr(options, f.name) for f in fields(LockOptions) if getattr(options, f.name) is not None}
    return replace(defaults, **overrides)


class LockSession:
    """One probe/acquire/release cycle for a lock identity.

    Usage:
        with LockSession(LockIdentity(working_dir=build_dir, root=root_dir)) as session:
            if not session.acquired:
                ...  # proceed anyway, just without exclusive access
            ...

    Args:
        identity: What to lock
        options: Caller options, merged over the configured defaults
        file_lock: Lock primitive (default: the process-wide MkdirFileLock)
        registry: Registry of held paths (default: the process-wide registry)
        config: Timing and layout defaults
        logger: Diagnostic sink
    """

    def __init__(
        self,
        identity: LockIdentity,
        options: LockOptions | Mapping[str, Any] | None = None,
        *,
        file_lock: FileLock | None = None,
        registry: LockRegistry | None = None,
        config: LockConfig | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.identity = identity
        self.config = config or DEFAULT_LOCK_CONFIG
        self.file_lock = file_lock or get_default_file_lock()
        self.registry = registry or get_default_registry()
        self.logger = with_log_context(
            logger or logging.getLogger(__name__),
            lock_id=identity.lock_id,
            lock_dir=identity.working_dir,
        )
        self.options = get_lock_options(options, default_lock_options(self.logger, self.config))

        self.lock_path: Path | None = None
        self.state = LockState.UNACQUIRED
        self.probe_status: ProbeStatus | None = None

        self._release: LockRelease | None = None
        self._compromised = threading.Event()
        self._state_lock = threading.RLock()

    @property
    def acquired(self) -> bool:
        with self._state_lock:
            return self.state in (LockState.HELD, LockState.COMPROMISED)

    @property
    def compromised(self) -> bool:
        return self._compromised.is_set()

    def __enter__(self) -> LockSession:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.acquired:
            self.release()

    def acquire(self) -> bool:
        """Try to take the lock without waiting. Never raises."""
        with self._state_lock:
            if self.state is not LockState.UNACQUIRED:
                return self.acquired

        lock_id = self.identity.lock_id
        working_dir = self.identity.working_dir

        try:
            self.lock_path = get_lock_path(self.identity, self.config.cache_subdir)
        except (OSError, ValueError) as e:
            self.logger.debug(f"Unable to create lock directory for '{lock_id}' on {working_dir}: {e}")
            return self._fail()

        self.state = LockState.PROBING
        self.probe_status = self._probe(self.lock_path)

        self.state = LockState.ACQUIRING
        release: LockRelease | None = None
        try:
            release = self.file_lock.acquire(
                self.lock_path,
                stale_seconds=self.options.stale_seconds,
                update_seconds=self.options.update_seconds,
                on_compromised=self._on_compromised,
            )
        except Exception as e:
            self.logger.debug(f"Lock attempt with id '{lock_id}' on {working_dir} failed: {e}")

        if release is None:
            return self._fail()

        self.registry.register(self.lock_path)
        with self._state_lock:
            self._release = release
            self.state = LockState.COMPROMISED if self.compromised else LockState.HELD
        return True

    def release(self) -> ReleaseStatus:
        """Remove the lock directory, then release the primitive lock. Never raises."""
        with self._state_lock:
            if self.state is LockState.RELEASED:
                return ReleaseStatus.ALREADY_RELEASED
            release = self._release
            if release is None or self.lock_path is None:
                return ReleaseStatus.NOT_HELD
            self._release = None
            self.state = LockState.RELEASED

        lock_path = self.lock_path
        try:
            remove_dir(lock_path)
            self.registry.unregister(lock_path)
            # Released last so the lock directory is gone even when this
            # fails for a compromised lock
            release()
        except Exception as e:
            if not self.compromised or "already released" not in str(e):
                self.logger.debug(f"Releasing lock {lock_path} failed: {e}")
                return ReleaseStatus.FAILED
            return self._remove_leftover_lockfile(lock_path)
        return ReleaseStatus.RELEASED

    def _probe(self, lock_path: Path) -> ProbeStatus:
        lock_id = self.identity.lock_id
        working_dir = self.identity.working_dir
        try:
            locked = self.file_lock.check(lock_path, stale_seconds=self.options.stale_seconds)
        except Exception as e:
            self.logger.debug(f"Check for an existing lock with id '{lock_id}' on {working_dir} failed: {e}")
            return ProbeStatus.UNKNOWN

        if locked:
            # Reported, but the acquire attempt still decides
            self.logger.critical(f"A lock with id '{lock_id}' already exists on {working_dir}")
            return ProbeStatus.LOCKED
        return ProbeStatus.UNLOCKED

    def _on_compromised(self, error: BaseException) -> None:
        on_compromised = self.options.on_compromised
        if on_compromised is not None:
            on_compromised(error)
        self._compromised.set()
        with self._state_lock:
            if self.state is LockState.HELD:
                self.state = LockState.COMPROMISED

    def _fail(self) -> bool:
        self.logger.warning(
            f"Unable to get a lock with id '{self.identity.lock_id}' on {self.identity.working_dir} (but will continue)"
        )
        with self._state_lock:
            self.state = LockState.FAILED
        return False

    def _remove_leftover_lockfile(self, lock_path: Path) -> ReleaseStatus:
        # The primitive leaves its lockfile behind after a compromise. Removing
        # it could upset a process that took the lock over, but a compromise
        # here is far more likely caused by delayed mtime updates.
        lockfile = lockfile_for(lock_path)
        try:
            if path_exists(lockfile):
                remove_dir(lockfile)
        except OSError as e:
            self.logger.debug(f"Removing leftover lockfile {lockfile} failed: {e}")
            return ReleaseStatus.FAILED
        return ReleaseStatus.RECOVERED


ReleaseFn = Callable[[], ReleaseStatus]


def acquire_lock(
    identity: LockIdentity,
    options: LockOptions | Mapping[str, Any] | None = None,
    *,
    file_lock: FileLock | None = None,
    registry: LockRegistry | None = None,
    config: LockConfig | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> ReleaseFn | Literal[False]:
    """Lock ``identity`` for this process.

    Returns:
        A release function, or False when the lock could not be obtained.
        False means "continue without exclusive access", not an error.
    """
    session = LockSession(
        identity,
        options,
        file_lock=file_lock,
        registry=registry,
        config=config,
        logger=logger,
    )
    if not session.acquire():
        return False
    return session.release
