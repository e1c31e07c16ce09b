"""Process-wide bookkeeping of held lock paths.

Every lock directory this process created is recorded here until it is
released. The first registration installs an exit hook that removes
whatever is still recorded when the interpreter exits or is stopped by
SIGINT/SIGTERM/SIGHUP, so a killed build never leaves lock directories
behind.
"""

from __future__ import annotations

import atexit
import contextlib
import logging
import os
import signal
import threading
from collections.abc import Callable
from pathlib import Path

from dirlock.core.locks.paths import remove_dir

logger = logging.getLogger(__name__)

ExitCallback = Callable[[], None]


def _exit_signals() -> list[signal.Signals]:
    names = ("SIGINT", "SIGTERM", "SIGHUP")
    return [getattr(signal, name) for name in names if hasattr(signal, name)]


def _chain_signal_handler(callback: ExitCallback, signum: int, previous: object) -> Callable:
    def _handle_signal(received: int, frame: object) -> None:
        callback()
        if callable(previous):
            previous(received, frame)
            return
        # Re-deliver with the default disposition so the exit status reflects the signal
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)

    return _handle_signal


def install_exit_hook(callback: ExitCallback) -> None:
    """Run ``callback`` on interpreter exit and on common termination signals.

    Previously installed signal handlers still run after ``callback``.
    Signals that are ignored stay ignored. Signal handlers can only be set
    from the main thread; elsewhere only the ``atexit`` hook is installed.
    """
    atexit.register(callback)

    if threading.current_thread() is not threading.main_thread():
        logger.debug("Not on the main thread; lock cleanup relies on atexit only")
        return

    for signum in _exit_signals():
        previous = signal.getsignal(signum)
        if previous is signal.SIG_IGN:
            continue
        try:
            signal.signal(signum, _chain_signal_handler(callback, signum, previous))
        except (OSError, ValueError) as e:
            logger.debug(f"Unable to install exit handler for {signum}: {e}")


class LockRegistry:
    """Set of lock paths held by this process, with a lazily installed exit sweep.

    The exit hook is installed on the first ``register`` call and never
    again for this registry. A registry that never registers a path never
    installs a hook.

    Args:
        install_hook: Installs the sweep callback (default: atexit + signals)
        remove: Removes one lock directory during the sweep
    """

    def __init__(
        self,
        install_hook: Callable[[ExitCallback], None] = install_exit_hook,
        remove: Callable[[Path], None] = remove_dir,
    ):
        self._install_hook = install_hook
        self._remove = remove
        self._paths: set[Path] = set()
        # Reentrant: the sweep may run from a signal handler on the registering thread
        self._state_lock = threading.RLock()
        self._hook_installed = False

    @property
    def hook_installed(self) -> bool:
        return self._hook_installed

    @property
    def paths(self) -> frozenset[Path]:
        with self._state_lock:
            return frozenset(self._paths)

    def __contains__(self, path: object) -> bool:
        with self._state_lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._state_lock:
            return len(self._paths)

    def register(self, path: Path) -> None:
        with self._state_lock:
            if not self._hook_installed:
                self._install_hook(self.sweep)
                self._hook_installed = True
            self._paths.add(Path(path))

    def unregister(self, path: Path) -> None:
        with self._state_lock:
            self._paths.discard(Path(path))

    def sweep(self) -> None:
        """Force-remove every registered lock directory, ignoring errors."""
        with self._state_lock:
            paths = list(self._paths)
            self._paths.clear()
        for path in paths:
            with contextlib.suppress(OSError):
                self._remove(path)


_default_registry: LockRegistry | None = None
_default_registry_guard = threading.Lock()


def get_default_registry() -> LockRegistry:
    """Process-wide registry, created on first use."""
    global _default_registry
    with _default_registry_guard:
        if _default_registry is None:
            _default_registry = LockRegistry()
        return _default_registry
