"""Exception hierarchy shared by the store, identity and ingestion layers."""
from __future__ import annotations


class UtilhubError(Exception):
    """Base class for all engine errors."""


class StoreUnavailableError(UtilhubError):
    """A read or write against the record store failed transiently.

    Aborts the current unit of work only; re-running it is safe.
    """


class BatchLimitExceededError(UtilhubError):
    """A single batch carried more writes than the store accepts."""

    def __init__(self, feed: str, size: int, limit: int) -> None:
        super().__init__(f"Batch for '{feed}' has {size} writes (limit {limit})")
        self.feed = feed
        self.size = size
        self.limit = limit


class PropagationLoopError(UtilhubError):
    """Trigger delivery did not settle within the configured number of events."""
