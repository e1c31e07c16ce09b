"""Core module - Foundation components.

- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
- Logging setup
- The locking subsystem (``dirlock.core.locks``)
"""

from dirlock.core.version import __version__

from dirlock.core.exceptions import (
    DirLockError,
    ConfigurationError,
    LockError,
    LockHeldError,
    LockCompromisedError,
    LockReleasedError,
)

from dirlock.core.config import DEFAULT_LOCK_CONFIG, LockConfig

from dirlock.core.constants import (
    DEFAULT_LOCK_ID,
    DEFAULT_STALE_SECONDS,
    LOCK_CACHE_SUBDIR,
)

__all__ = [
    "__version__",
    "DirLockError",
    "ConfigurationError",
    "LockError",
    "LockHeldError",
    "LockCompromisedError",
    "LockReleasedError",
    "DEFAULT_LOCK_CONFIG",
    "LockConfig",
    "DEFAULT_LOCK_ID",
    "DEFAULT_STALE_SECONDS",
    "LOCK_CACHE_SUBDIR",
]
