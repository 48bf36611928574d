"""Canonical person id propagation across feeds.

Decision logic only reads; the writes it wants are returned as effects and
executed by :class:`EffectDispatcher`.

Inbound (a dependent-feed record changed): resolve the record's person against
the authoritative feed and set the id when it is missing. A differing id is
never overwritten; a conflict entry is attached instead.

Outbound (an authoritative record changed and carries an id): push the id to
all latest dependent records of the same person (and competence center, when
known) whose id differs.

Every write that propagation causes re-triggers a handler whose no-op check
("id already correct", "conflict already recorded") ends the chain, so repeated
or re-ordered delivery converges to one end state.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..common.config_validator import FeedsConfig
from ..common.errors import StoreUnavailableError
from ..store.base import RecordStore, WriteEvent
from .dispatch import EffectDispatcher
from .effects import Effect, EventOutcome, RecordConflict, SetPersonId
from .keys import cc_key, normalize_person, person_key
from .matcher import MatchStatus, PersonMatcher


LOGGER = logging.getLogger("utilhub.identity")


class IdentityPropagator:
    def __init__(
        self,
        store: RecordStore,
        feeds: Optional[FeedsConfig] = None,
        matcher: Optional[PersonMatcher] = None,
        dispatcher: Optional[EffectDispatcher] = None,
    ) -> None:
        self.store = store
        self.feeds = feeds or FeedsConfig()
        self.matcher = matcher or PersonMatcher(store, self.feeds.authoritative)
        self.dispatcher = dispatcher or EffectDispatcher(store)

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------
    def on_record_written(
        self,
        feed: str,
        doc_id: str,
        before: Optional[Mapping[str, Any]],
        after: Optional[Mapping[str, Any]],
    ) -> List[Effect]:
        """Return the effects one create/update of ``feed/doc_id`` calls for."""
        if after is None:
            return []
        if feed == self.feeds.authoritative:
            return self._outbound(feed, doc_id, after)
        if feed in self.feeds.dependents:
            return self._inbound(feed, doc_id, after)
        return []

    def _inbound(self, feed: str, doc_id: str, record: Mapping[str, Any]) -> List[Effect]:
        person = normalize_person(record.get("person"))
        if not person:
            LOGGER.warning("No person field in %s/%s, skipping", feed, doc_id)
            return []
        if not record.get("isLatest", True):
            LOGGER.debug("Superseded record %s/%s, not resolving", feed, doc_id)
            return []

        result = self.matcher.resolve(record.get("competenceCenter"), person)
        if result.status is MatchStatus.AMBIGUOUS:
            LOGGER.warning("Ambiguous person for %s/%s (%s); id left untouched", feed, doc_id, person)
            return []
        if result.status is MatchStatus.NOT_FOUND:
            LOGGER.info("No canonical id in %s for %s/%s (%s)", self.feeds.authoritative, feed, doc_id, person)
            return []

        incoming = result.person_id
        current = record.get("canonicalPersonId")
        if not current:
            LOGGER.info("Setting canonical id %s on %s/%s", incoming, feed, doc_id)
            return [SetPersonId(feed, doc_id, incoming)]
        if str(current) == incoming:
            LOGGER.debug("Canonical id already correct on %s/%s: %s", feed, doc_id, incoming)
            return []

        existing = record.get("personIdConflict") or {}
        if existing.get("previous") == str(current) and existing.get("incoming") == incoming:
            LOGGER.debug("Conflict already recorded on %s/%s", feed, doc_id)
            return []
        LOGGER.warning("Canonical id conflict on %s/%s: %s -> %s", feed, doc_id, current, incoming)
        return [RecordConflict(feed, doc_id, str(current), incoming)]

    def _outbound(self, feed: str, doc_id: str, record: Mapping[str, Any]) -> List[Effect]:
        person_id = record.get("canonicalPersonId")
        if not person_id:
            LOGGER.info("No canonical id on %s/%s, nothing to propagate", feed, doc_id)
            return []
        if not record.get("isLatest", True):
            LOGGER.debug("Superseded record %s/%s, not propagating", feed, doc_id)
            return []
        pkey = record.get("personKey") or person_key(record.get("person"))
        if not pkey:
            LOGGER.warning("No person field in %s/%s, skipping", feed, doc_id)
            return []
        ckey = record.get("ccKey") or cc_key(record.get("competenceCenter"))
        return self.outbound_effects(pkey, ckey, str(person_id))

    def outbound_effects(self, pkey: str, ckey: Optional[str], person_id: str) -> List[Effect]:
        effects: List[Effect] = []
        for target in self.feeds.dependents:
            filters: Dict[str, Any] = {"personKey": pkey, "isLatest": True}
            if ckey:
                filters["ccKey"] = ckey
            records = self.store.query(target, filters)
            stale = [r for r in records if r.get("canonicalPersonId") != person_id]
            if not records:
                LOGGER.info("No target records in %s for %s", target, pkey)
            elif not stale:
                LOGGER.info("No id updates needed in %s (all %d correct)", target, len(records))
            effects.extend(SetPersonId(target, r.doc_id, person_id) for r in stale)
        return effects

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def handle_event(self, event: WriteEvent) -> EventOutcome:
        """Decide and apply one write event; store failures abort this event only."""
        if event.is_delete:
            return EventOutcome(event.feed, event.doc_id, "ignored", detail="delete")
        if event.feed not in self.feeds.all_feeds:
            return EventOutcome(event.feed, event.doc_id, "ignored", detail="untracked feed")
        try:
            effects = self.on_record_written(event.feed, event.doc_id, event.before, event.after)
            written = self.dispatcher.apply(effects)
        except StoreUnavailableError as exc:
            LOGGER.warning("Propagation aborted for %s/%s: %s", event.feed, event.doc_id, exc)
            return EventOutcome(event.feed, event.doc_id, "aborted", detail=str(exc))
        status = "applied" if effects else "noop"
        return EventOutcome(event.feed, event.doc_id, status, effects=effects, written=written)

    def backfill(self) -> int:
        """Push every latest authoritative id outward; returns documents written."""
        records = self.store.query(self.feeds.authoritative, {"isLatest": True})
        with_id = [r for r in records if r.get("canonicalPersonId")]
        LOGGER.info("Backfill: %d %s records carry a canonical id", len(with_id), self.feeds.authoritative)
        total = 0
        failed = 0
        for rec in with_id:
            pkey = rec.get("personKey") or person_key(rec.get("person"))
            if not pkey:
                continue
            ckey = rec.get("ccKey") or cc_key(rec.get("competenceCenter"))
            try:
                effects = self.outbound_effects(pkey, ckey, str(rec.get("canonicalPersonId")))
                total += self.dispatcher.apply(effects)
            except StoreUnavailableError as exc:
                failed += 1
                LOGGER.warning("Backfill skipped %s/%s: %s", rec.feed, rec.doc_id, exc)
        LOGGER.info("Backfill finished: %d documents written, %d records failed", total, failed)
        return total
