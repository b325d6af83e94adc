"""
Error types shared by the fetch boundary and the sync engine.
"""


class SyncError(Exception):
    """Base class for sync engine errors."""


class FetchFailure(SyncError):
    """Raised when a log or block fetch fails at the transport level."""


class InvalidFilterInput(SyncError, ValueError):
    """Raised when a filter would be built from an empty or unsupported input."""
