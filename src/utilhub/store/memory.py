from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..common.errors import BatchLimitExceededError
from .base import (
    RecordStore,
    StoredRecord,
    StoreStats,
    Write,
    WriteEvent,
    apply_write,
    matches,
)


class InMemoryRecordStore(RecordStore):
    """Dict-backed store; the reference implementation and the test fake.

    Every committed batch is counted in ``stats`` so callers can assert how many
    documents a run actually wrote.
    """

    def __init__(self, batch_limit: int = 450) -> None:
        super().__init__(batch_limit=batch_limit)
        self._feeds: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.stats = StoreStats()

    def _collection(self, feed: str) -> Dict[str, Dict[str, Any]]:
        return self._feeds.setdefault(feed, {})

    def query(
        self,
        feed: str,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[StoredRecord]:
        self.stats.reads += 1
        docs = [
            (doc_id, data)
            for doc_id, data in self._collection(feed).items()
            if matches(data, filters)
        ]
        if order_by:
            docs = [(i, d) for i, d in docs if d.get(order_by) is not None]
            docs.sort(key=lambda item: (item[1][order_by], item[0]), reverse=descending)
        if limit is not None:
            docs = docs[: max(0, int(limit))]
        return [StoredRecord(feed, doc_id, copy.deepcopy(data)) for doc_id, data in docs]

    def get(self, feed: str, doc_id: str) -> Optional[StoredRecord]:
        self.stats.reads += 1
        data = self._collection(feed).get(doc_id)
        if data is None:
            return None
        return StoredRecord(feed, doc_id, copy.deepcopy(data))

    def batch_write(self, feed: str, writes: Sequence[Write]) -> None:
        writes = list(writes)
        if len(writes) > self.batch_limit:
            raise BatchLimitExceededError(feed, len(writes), self.batch_limit)
        if not writes:
            return
        coll = self._collection(feed)
        events: List[WriteEvent] = []
        for w in writes:
            before = coll.get(w.doc_id)
            after = apply_write(before, w)
            coll[w.doc_id] = after
            events.append(WriteEvent(feed, w.doc_id, copy.deepcopy(before), copy.deepcopy(after)))
        self.stats.writes += len(writes)
        self.stats.commits += 1
        self.stats.batch_sizes.append(len(writes))
        self._after_commit(feed)
        self._notify(events)

    def delete(self, feed: str, doc_id: str) -> None:
        """Remove one document (admin action) and report a delete event."""
        before = self._collection(feed).pop(doc_id, None)
        if before is None:
            return
        self._after_commit(feed)
        self._notify([WriteEvent(feed, doc_id, before, None)])

    def _after_commit(self, feed: str) -> None:
        """Hook for persistent subclasses."""

    def feeds(self) -> List[str]:
        return sorted(self._feeds)

    def count(self, feed: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        return sum(1 for data in self._collection(feed).values() if matches(data, filters))
