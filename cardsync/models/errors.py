"""
Sync cycle errors.

Every failure inside a catalog or price cycle is raised as one of these.
They are cycle-scoped: the scheduler logs them and waits for the next tick,
the manual CLI logs them and exits non-zero.
"""


class SyncError(Exception):
    """Base class for failures that abort a single sync cycle."""

    pass


class FetchError(SyncError):
    """Raised when a bulk file cannot be downloaded."""

    pass


class DecodeError(SyncError):
    """Raised when a downloaded file is not valid gzip or JSON."""

    pass


class PersistenceError(SyncError):
    """Raised when a batch, sweep or checkpoint write fails."""

    pass
