from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .base import RecordStore, Write


LOGGER = logging.getLogger("utilhub.store")


class BatchWriter:
    """Stage set-operations for one feed and commit them in bounded batches.

    A batch is committed as soon as it reaches ``limit`` staged writes, and the
    remainder on :meth:`flush`. Used as a context manager, the remainder is
    flushed on normal exit only; on an exception the staged writes are dropped
    and the already committed batches stay committed.
    """

    def __init__(self, store: RecordStore, feed: str, limit: Optional[int] = None) -> None:
        self.store = store
        self.feed = feed
        store_limit = int(store.batch_limit)
        self.limit = min(int(limit), store_limit) if limit else store_limit
        if self.limit < 1:
            raise ValueError("Batch limit must be at least 1")
        self._pending: List[Write] = []
        self.commits = 0
        self.written = 0

    def set(self, doc_id: str, data: Dict[str, Any], merge: bool = True) -> None:
        self._pending.append(Write(doc_id=doc_id, data=data, merge=merge))
        if len(self._pending) >= self.limit:
            self.flush()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def flush(self) -> None:
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        self.store.batch_write(self.feed, batch)
        self.commits += 1
        self.written += len(batch)
        LOGGER.debug("Committed batch of %d writes to %s", len(batch), self.feed)

    def __enter__(self) -> "BatchWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.flush()
        else:
            self._pending = []
