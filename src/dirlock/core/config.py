"""Configuration dataclasses for dirlock.

These dataclasses centralize lock timing and layout options. They can be
created from environment variables (optionally loaded from a ``.env`` file)
or used directly in code and tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from dotenv import load_dotenv

from dirlock.core.constants import (
    DEFAULT_LOCK_ID,
    DEFAULT_STALE_SECONDS,
    ENV_CACHE_SUBDIR,
    ENV_DEFAULT_ID,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_STALE_SECONDS,
    ENV_UPDATE_SECONDS,
    LOCK_CACHE_SUBDIR,
    MIN_UPDATE_SECONDS,
    VALID_LOG_FORMATS,
    VALID_LOG_LEVELS,
)
from dirlock.core.exceptions import ConfigurationError


def _bootstrap_dotenv(logger: logging.Logger) -> None:
    """Load .env variables into the process environment (best effort)."""
    try:
        if load_dotenv():
            logger.debug(".env file found and loaded")
        else:
            logger.debug(".env file not found")
    except Exception as e:
        logger.debug(f"Failed to load .env via python-dotenv: {e}")


def _read_seconds(
    environ: Mapping[str, str], name: str, default: float | None, logger: logging.Logger
) -> float | None:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r (not a number); using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Invalid %s=%r (must be positive); using default %s", name, raw, default)
        return default
    return value


@dataclass
class LockConfig:
    """Configuration for lock timing, layout and logging.

    Attributes:
        stale_seconds: A lock not refreshed for this long is stale (default: 30.0)
        update_seconds: Refresh interval; None means stale_seconds / 2 (default: None)
        default_id: Lock domain used when none is given (default: "nuxt")
        cache_subdir: Lock directory location relative to the root
            (default: "node_modules/.cache/nuxt")
        log_level: Logging level name (default: "INFO")
        log_format: "text" or "json" (default: "text")
    """

    stale_seconds: float = DEFAULT_STALE_SECONDS
    update_seconds: float | None = None
    default_id: str = DEFAULT_LOCK_ID
    cache_subdir: str = LOCK_CACHE_SUBDIR
    log_level: str = "INFO"
    log_format: str = "text"

    def validate(self) -> None:
        """Raise ConfigurationError if values are inconsistent."""
        if self.stale_seconds <= 0:
            raise ConfigurationError("stale_seconds must be positive", field="stale_seconds")
        if self.update_seconds is not None:
            if self.update_seconds < MIN_UPDATE_SECONDS:
                raise ConfigurationError(
                    f"update_seconds must be at least {MIN_UPDATE_SECONDS}", field="update_seconds"
                )
            if self.update_seconds > self.stale_seconds / 2:
                raise ConfigurationError(
                    "update_seconds must not exceed half of stale_seconds",
                    field="update_seconds",
                    details=f"{self.update_seconds} > {self.stale_seconds / 2}",
                )
        if not self.default_id:
            raise ConfigurationError("default_id must not be empty", field="default_id")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level '{self.log_level}'", field="log_level")
        if self.log_format.lower() not in VALID_LOG_FORMATS:
            raise ConfigurationError(f"Invalid log format '{self.log_format}'", field="log_format")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        load_env_file: bool = True,
        logger: logging.Logger | None = None,
    ) -> LockConfig:
        """Build a config from DIRLOCK_* environment variables.

        Invalid numeric values are reported and replaced by their defaults
        rather than failing, since locking is advisory.
        """
        log = logger or logging.getLogger(__name__)
        if environ is None:
            if load_env_file:
                _bootstrap_dotenv(log)
            environ = os.environ

        return cls(
            stale_seconds=_read_seconds(environ, ENV_STALE_SECONDS, DEFAULT_STALE_SECONDS, log),
            update_seconds=_read_seconds(environ, ENV_UPDATE_SECONDS, None, log),
            default_id=environ.get(ENV_DEFAULT_ID, "").strip() or DEFAULT_LOCK_ID,
            cache_subdir=environ.get(ENV_CACHE_SUBDIR, "").strip() or LOCK_CACHE_SUBDIR,
            log_level=environ.get(ENV_LOG_LEVEL, "INFO").strip().upper() or "INFO",
            log_format=environ.get(ENV_LOG_FORMAT, "text").strip().lower() or "text",
        )


DEFAULT_LOCK_CONFIG = LockConfig()
