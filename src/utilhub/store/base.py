"""Record store capability used by the engine.

The engine never talks to a storage backend directly. It receives a
``RecordStore`` that offers collection-scoped equality queries, single-document
reads and batched writes, and that reports every committed document change to
subscribed listeners (the trigger surface).
"""
from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence


def server_timestamp() -> str:
    """UTC timestamp string stamped on writes."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class StoredRecord:
    """A document read from a feed: its id plus a private copy of its fields."""

    feed: str
    doc_id: str
    data: Dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True)
class Write:
    """One set-operation inside a batch.

    With ``merge=True`` top-level fields of ``data`` replace the stored ones and
    all other stored fields are kept; with ``merge=False`` the document is
    replaced.
    """

    doc_id: str
    data: Dict[str, Any]
    merge: bool = True


@dataclass(frozen=True)
class WriteEvent:
    """A committed change to one document. ``after`` is None for deletes."""

    feed: str
    doc_id: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @property
    def is_delete(self) -> bool:
        return self.after is None


WriteListener = Callable[[Sequence[WriteEvent]], None]


def matches(data: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    """Equality filter; a missing field never matches."""
    if not filters:
        return True
    for key, expected in filters.items():
        if key not in data or data[key] != expected:
            return False
    return True


class RecordStore(ABC):
    """Abstract document store with per-batch write limits."""

    def __init__(self, batch_limit: int = 450) -> None:
        self.batch_limit = int(batch_limit)
        self._listeners: List[WriteListener] = []

    @abstractmethod
    def query(
        self,
        feed: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[StoredRecord]:
        """Return documents of ``feed`` whose fields equal every filter value.

        ``order_by`` drops documents lacking that field, like an ordered index.
        """

    @abstractmethod
    def get(self, feed: str, doc_id: str) -> Optional[StoredRecord]:
        ...

    @abstractmethod
    def batch_write(self, feed: str, writes: Sequence[Write]) -> None:
        """Commit ``writes`` to ``feed`` as one batch of at most ``batch_limit``."""

    def subscribe(self, listener: WriteListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: WriteListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, events: Sequence[WriteEvent]) -> None:
        if not events:
            return
        for listener in list(self._listeners):
            listener(events)


def apply_write(before: Optional[Dict[str, Any]], write: Write) -> Dict[str, Any]:
    """Return the stored document after applying ``write`` to ``before``."""
    if write.merge and before is not None:
        after = copy.deepcopy(before)
        after.update(copy.deepcopy(write.data))
        return after
    return copy.deepcopy(write.data)


@dataclass
class StoreStats:
    reads: int = 0
    writes: int = 0
    commits: int = 0
    batch_sizes: List[int] = field(default_factory=list)
