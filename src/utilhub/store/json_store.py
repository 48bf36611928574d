"""File-backed record store: one JSON document map per feed.

Used by the CLI so uploads, propagation and consolidation can run across
separate invocations. Each committed batch rewrites the feed file atomically
(temp file + replace). A failed write leaves the feed as it was on disk.
"""
from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Sequence

from ..common.errors import StoreUnavailableError
from .base import Write
from .memory import InMemoryRecordStore


LOGGER = logging.getLogger("utilhub.store")


class JsonFileRecordStore(InMemoryRecordStore):
    def __init__(self, store_dir: str | os.PathLike[str], batch_limit: int = 450) -> None:
        super().__init__(batch_limit=batch_limit)
        self._snapshots: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.store_dir = Path(store_dir).expanduser().resolve()
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot create store directory {self.store_dir}: {exc}") from exc
        self._load_all()

    def _feed_path(self, feed: str) -> Path:
        return self.store_dir / f"{feed}.json"

    def _load_all(self) -> None:
        for path in sorted(self.store_dir.glob("*.json")):
            try:
                with path.open("r", encoding="utf-8") as fh:
                    docs: Dict[str, Dict[str, Any]] = json.load(fh)
            except (OSError, json.JSONDecodeError) as exc:
                raise StoreUnavailableError(f"Cannot read feed file {path}: {exc}") from exc
            if not isinstance(docs, dict):
                raise StoreUnavailableError(f"Feed file {path} does not hold a document map")
            self._feeds[path.stem] = docs
            LOGGER.debug("Loaded %d documents from %s", len(docs), path)

    def batch_write(self, feed: str, writes: Sequence[Write]) -> None:
        self._snapshots[feed] = copy.deepcopy(self._feeds.get(feed, {}))
        super().batch_write(feed, writes)

    def delete(self, feed: str, doc_id: str) -> None:
        self._snapshots[feed] = copy.deepcopy(self._feeds.get(feed, {}))
        super().delete(feed, doc_id)

    def _after_commit(self, feed: str) -> None:
        """Write the feed file; on failure the feed rolls back to its last saved state."""
        snapshot = self._snapshots.pop(feed, None)
        path = self._feed_path(feed)
        tmp = path.with_suffix(".json.tmp")
        try:
            with tmp.open("w", encoding="utf-8") as fh:
                json.dump(self._collection(feed), fh, indent=2, ensure_ascii=False, sort_keys=True)
            tmp.replace(path)
        except OSError as exc:
            if snapshot is not None:
                self._feeds[feed] = snapshot
            raise StoreUnavailableError(f"Cannot persist feed '{feed}' to {path}: {exc}") from exc
