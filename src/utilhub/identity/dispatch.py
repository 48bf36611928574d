"""Execution side of identity propagation.

``EffectDispatcher`` turns effect descriptions into bounded merge-write batches.
``LocalTriggerDispatcher`` plays the hosting platform's role for local runs:
it subscribes to a store and delivers every committed document change to a
handler, one event at a time and in commit order.
"""
from __future__ import annotations

import logging
from collections import Counter, OrderedDict, deque
from typing import Callable, Deque, Dict, List, Optional, Sequence

from ..common.errors import PropagationLoopError
from ..store.base import RecordStore, WriteEvent, server_timestamp
from ..store.batching import BatchWriter
from .effects import Effect, EventOutcome, RecordConflict, SetPersonId


LOGGER = logging.getLogger("utilhub.identity")


class EffectDispatcher:
    def __init__(
        self,
        store: RecordStore,
        batch_limit: Optional[int] = None,
        clock: Callable[[], str] = server_timestamp,
    ) -> None:
        self.store = store
        self.batch_limit = batch_limit
        self.clock = clock

    def _payload(self, effect: Effect, now: str) -> Dict[str, object]:
        if isinstance(effect, SetPersonId):
            return {"canonicalPersonId": effect.person_id, "personIdSetAt": now}
        if isinstance(effect, RecordConflict):
            return {
                "personIdConflict": {
                    "previous": effect.previous,
                    "incoming": effect.incoming,
                    "at": now,
                }
            }
        raise TypeError(f"Unsupported effect: {effect!r}")

    def apply(self, effects: Sequence[Effect]) -> int:
        """Write ``effects`` as merge-writes, one bounded batch series per feed.

        Several effects for the same document collapse to the last one.
        Returns the number of documents written.
        """
        if not effects:
            return 0
        grouped: "OrderedDict[str, OrderedDict[str, Effect]]" = OrderedDict()
        for effect in effects:
            grouped.setdefault(effect.feed, OrderedDict())[effect.doc_id] = effect

        now = self.clock()
        written = 0
        for feed, by_doc in grouped.items():
            with BatchWriter(self.store, feed, self.batch_limit) as writer:
                for doc_id, effect in by_doc.items():
                    writer.set(doc_id, self._payload(effect, now), merge=True)
            written += writer.written
            LOGGER.info("Applied %d identity writes to %s in %d batch(es)", writer.written, feed, writer.commits)
        return written


class LocalTriggerDispatcher:
    """Deliver store write events to ``handler.handle_event`` in FIFO order.

    Writes performed while handling an event are queued, not handled
    recursively. A drain that exceeds ``max_deliveries`` raises
    :class:`PropagationLoopError` and drops the queue.
    """

    def __init__(self, store: RecordStore, handler, max_deliveries: int = 10000) -> None:
        self.store = store
        self.handler = handler
        self.max_deliveries = int(max_deliveries)
        self._queue: Deque[WriteEvent] = deque()
        self._draining = False
        self.delivered = 0
        self.status_counts: Counter = Counter()
        self.outcomes: List[EventOutcome] = []

    def attach(self) -> "LocalTriggerDispatcher":
        self.store.subscribe(self._on_events)
        return self

    def detach(self) -> None:
        self.store.unsubscribe(self._on_events)

    def __enter__(self) -> "LocalTriggerDispatcher":
        return self.attach()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.detach()

    def _on_events(self, events: Sequence[WriteEvent]) -> None:
        self._queue.extend(events)
        if not self._draining:
            self._drain()

    def _drain(self) -> None:
        self._draining = True
        handled = 0
        try:
            while self._queue:
                event = self._queue.popleft()
                handled += 1
                if handled > self.max_deliveries:
                    self._queue.clear()
                    raise PropagationLoopError(
                        f"Trigger delivery did not settle after {self.max_deliveries} events"
                    )
                outcome = self.handler.handle_event(event)
                self.delivered += 1
                self.status_counts[outcome.status] += 1
                self.outcomes.append(outcome)
        finally:
            self._draining = False
