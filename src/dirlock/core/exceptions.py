"""Custom exceptions for dirlock.

Lock errors carry the path they concern so diagnostics can name the
directory that could not be locked, refreshed, or released.
"""


class DirLockError(Exception):
    """Base exception for all dirlock errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(DirLockError):
    """Exception raised for invalid configuration values.

    Examples:
        - Non-numeric DIRLOCK_STALE_SECONDS
        - Non-positive stale threshold
        - Update interval larger than the stale threshold
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)


class LockError(DirLockError):
    """Base exception for lock primitive failures."""

    def __init__(self, message: str, lock_path: str | None = None, details: str | None = None):
        self.lock_path = lock_path
        super().__init__(message, details)


class LockHeldError(LockError):
    """Raised when the lockfile already exists and is not stale."""

    def __init__(self, lock_path: str):
        super().__init__("Lock file is already being held", lock_path=lock_path, details=lock_path)


class LockCompromisedError(LockError):
    """Raised (and passed to ``on_compromised``) when a held lock was lost.

    Attributes:
        reason: What the refresh loop observed (vanished, taken over, late update)
    """

    def __init__(self, lock_path: str, reason: str):
        self.reason = reason
        super().__init__("Lock is compromised", lock_path=lock_path, details=reason)


class LockReleasedError(LockError):
    """Raised when releasing a lock that is no longer held by this handle."""

    def __init__(self, lock_path: str):
        super().__init__("Lock is already released", lock_path=lock_path, details=lock_path)
