"""Constants and default values for dirlock.

Lock path layout, stale/refresh timings and environment variable names
live here so every module agrees on them.
"""

# ==================== LOCK IDENTITY ====================

# Lock domain used when the caller does not name one
DEFAULT_LOCK_ID: str = "nuxt"

# Lock directories live under <root>/<LOCK_CACHE_SUBDIR>
LOCK_CACHE_SUBDIR: str = "node_modules/.cache/nuxt"

# The primitive's lockfile is a sibling directory named <lock_path><LOCKFILE_SUFFIX>
LOCKFILE_SUFFIX: str = ".lock"

# Hex characters kept from the sha256 digest of root + working dir
DIGEST_LENGTH: int = 16

# ==================== TIMINGS ====================

DEFAULT_STALE_SECONDS: float = 30.0  # Lock considered abandoned after this long without refresh
MIN_STALE_SECONDS: float = 2.0  # Lower bound for the stale threshold
MIN_UPDATE_SECONDS: float = 1.0  # Lower bound for the mtime refresh interval
STALE_RETRY_ATTEMPTS: int = 1  # Reclaim-and-retry rounds when an existing lock is stale

# ==================== ENVIRONMENT ====================

ENV_STALE_SECONDS: str = "DIRLOCK_STALE_SECONDS"
ENV_UPDATE_SECONDS: str = "DIRLOCK_UPDATE_SECONDS"
ENV_DEFAULT_ID: str = "DIRLOCK_DEFAULT_ID"
ENV_CACHE_SUBDIR: str = "DIRLOCK_CACHE_SUBDIR"
ENV_LOG_LEVEL: str = "DIRLOCK_LOG_LEVEL"
ENV_LOG_FORMAT: str = "DIRLOCK_LOG_FORMAT"

# ==================== LOGGING ====================

VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS: tuple[str, ...] = ("text", "json")
