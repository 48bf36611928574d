"""Upload versioning: one strictly increasing version per feed upload.

After :meth:`UploadVersioner.stamp_upload` exactly one record per person key in
the feed is ``isLatest=True`` for every person present in the upload, and no
record is latest for persons the upload no longer contains. Prior records of a
person are updated in place, so re-uploading the same rows never duplicates.
"""
from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from ..store.base import RecordStore, StoredRecord, Write, server_timestamp
from ..store.batching import BatchWriter
from .models import RawFeedRecord


LOGGER = logging.getLogger("utilhub.ingestion")

RowLike = Union[RawFeedRecord, Mapping[str, Any]]


@dataclass
class UploadResult:
    feed: str
    file_name: str
    version: int
    inserted: int = 0
    updated: int = 0
    superseded: int = 0
    skipped: int = 0
    duplicates: int = 0
    batches: int = 0

    @property
    def row_count(self) -> int:
        return self.inserted + self.updated

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["row_count"] = self.row_count
        return out


def document_id(feed: str, pkey: str) -> str:
    """Deterministic document id for a person key within a feed."""
    return hashlib.sha1(f"{feed}|{pkey}".encode("utf-8")).hexdigest()


class UploadVersioner:
    def __init__(
        self,
        store: RecordStore,
        batch_limit: Optional[int] = None,
        history_feed: Optional[str] = "uploadHistory",
        clock: Callable[[], str] = server_timestamp,
    ) -> None:
        self.store = store
        self.batch_limit = batch_limit
        self.history_feed = history_feed
        self.clock = clock
        self._issued: Dict[str, int] = {}

    def next_version(self, feed: str) -> int:
        """Next upload version of ``feed``.

        Uploads that wrote no feed records still own their version, so the
        history entries and the versions issued by this instance count too.
        """
        top = self.store.query(feed, order_by="uploadVersion", descending=True, limit=1)
        current = int(top[0].get("uploadVersion") or 0) if top else 0
        if self.history_feed:
            logged = self.store.query(
                self.history_feed, {"feed": feed}, order_by="version", descending=True, limit=1
            )
            if logged:
                current = max(current, int(logged[0].get("version") or 0))
        current = max(current, self._issued.get(feed, 0))
        return current + 1

    def _validate_rows(self, rows: Iterable[RowLike], result: UploadResult) -> "OrderedDict[str, RawFeedRecord]":
        incoming: "OrderedDict[str, RawFeedRecord]" = OrderedDict()
        for idx, row in enumerate(rows, start=1):
            try:
                rec = row if isinstance(row, RawFeedRecord) else RawFeedRecord.model_validate(dict(row))
            except ValidationError as exc:
                result.skipped += 1
                LOGGER.warning("Row %d of %s rejected: %s", idx, result.file_name, exc.errors()[0].get("msg"))
                continue
            if not rec.person:
                result.skipped += 1
                continue
            key = rec.person_key
            if key in incoming:
                # Last row wins
                result.duplicates += 1
            incoming[key] = rec
        if result.duplicates:
            LOGGER.warning("%d duplicate person rows in %s collapsed to the last one", result.duplicates, result.file_name)
        return incoming

    @staticmethod
    def _newest_by_key(existing: Iterable[StoredRecord]) -> Dict[str, StoredRecord]:
        newest: Dict[str, StoredRecord] = {}
        for rec in existing:
            key = rec.get("personKey")
            if not key:
                continue
            cur = newest.get(key)
            rank = (int(rec.get("uploadVersion") or 0), bool(rec.get("isLatest")))
            if cur is None or rank > (int(cur.get("uploadVersion") or 0), bool(cur.get("isLatest"))):
                newest[key] = rec
        return newest

    def stamp_upload(self, feed: str, rows: Iterable[RowLike], file_name: str) -> UploadResult:
        """Version and write one bulk upload of ``feed``."""
        version = self.next_version(feed)
        self._issued[feed] = version
        result = UploadResult(feed=feed, file_name=file_name, version=version)
        incoming = self._validate_rows(rows, result)

        existing = self.store.query(feed)
        newest = self._newest_by_key(existing)
        targets = {key: newest[key].doc_id for key in incoming if key in newest}
        target_ids = set(targets.values())
        now = self.clock()

        with BatchWriter(self.store, feed, self.batch_limit) as writer:
            for rec in existing:
                if rec.get("isLatest") and rec.doc_id not in target_ids:
                    writer.set(rec.doc_id, {"isLatest": False, "supersededAt": now, "updatedAt": now})
                    result.superseded += 1

            for key, row in incoming.items():
                doc = row.to_document()
                doc.update(
                    {
                        "fileName": file_name,
                        "uploadVersion": version,
                        "isLatest": True,
                        "uploadedAt": now,
                        "updatedAt": now,
                    }
                )
                if key in targets:
                    prior = newest[key]
                    if not doc.get("canonicalPersonId") and prior.get("canonicalPersonId"):
                        doc["canonicalPersonId"] = prior.get("canonicalPersonId")
                    writer.set(targets[key], doc, merge=True)
                    result.updated += 1
                else:
                    doc["createdAt"] = now
                    writer.set(document_id(feed, key), doc, merge=False)
                    result.inserted += 1
        result.batches = writer.commits

        LOGGER.info(
            "Upload %s v%d of %s: %d inserted, %d updated, %d superseded, %d skipped in %d batch(es)",
            feed,
            version,
            file_name,
            result.inserted,
            result.updated,
            result.superseded,
            result.skipped,
            result.batches,
        )
        self._record_history(result, now)
        return result

    def _record_history(self, result: UploadResult, now: str) -> None:
        if not self.history_feed:
            return
        entry = {
            "feed": result.feed,
            "fileName": result.file_name,
            "version": result.version,
            "rowCount": result.row_count,
            "inserted": result.inserted,
            "updated": result.updated,
            "superseded": result.superseded,
            "skipped": result.skipped,
            "status": "success",
            "createdAt": now,
        }
        self.store.batch_write(self.history_feed, [Write(f"{result.feed}-v{result.version}", entry, merge=False)])
