"""Resolve (competence center, person) pairs to canonical person ids.

Only the authoritative feed is consulted. Name collisions across competence
centers are common, so a name-only lookup is accepted only when a bounded probe
(two documents) proves it unique.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..store.base import RecordStore
from .keys import cc_key, person_key


LOGGER = logging.getLogger("utilhub.identity")

# Two documents are enough to tell a unique name from a shared one
AMBIGUITY_PROBE_LIMIT = 2


class MatchStatus(str, Enum):
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class MatchResult:
    status: MatchStatus
    person_id: Optional[str] = None
    via: Optional[str] = None  # "cc+person" or "person"

    @property
    def matched(self) -> bool:
        return self.status is MatchStatus.MATCHED

    @classmethod
    def found(cls, person_id: Any, via: str) -> "MatchResult":
        return cls(MatchStatus.MATCHED, str(person_id), via)


NOT_FOUND = MatchResult(MatchStatus.NOT_FOUND)
AMBIGUOUS = MatchResult(MatchStatus.AMBIGUOUS)


class PersonMatcher:
    """Look up canonical person ids in the authoritative feed."""

    def __init__(self, store: RecordStore, authoritative_feed: str = "auslastung") -> None:
        self.store = store
        self.feed = authoritative_feed

    def resolve(self, competence_center: Optional[str], person: str) -> MatchResult:
        """Resolve a person to a canonical id.

        1. With a competence center: exact (cc, person) match carrying an id.
        2. Otherwise, or when step 1 finds nothing: name-only probe of at most
           two latest records; none -> NOT_FOUND, two -> AMBIGUOUS, one with an
           id -> MATCHED.

        Store errors propagate to the caller.
        """
        pkey = person_key(person)
        if not pkey:
            return NOT_FOUND
        ckey = cc_key(competence_center)

        if ckey:
            hits = self.store.query(
                self.feed,
                {"ccKey": ckey, "personKey": pkey, "isLatest": True},
                limit=1,
            )
            if hits and hits[0].get("canonicalPersonId"):
                pid = hits[0].get("canonicalPersonId")
                LOGGER.info("Match via cc+person: %s / %s -> %s", ckey, pkey, pid)
                return MatchResult.found(pid, "cc+person")

        hits = self.store.query(
            self.feed,
            {"personKey": pkey, "isLatest": True},
            limit=AMBIGUITY_PROBE_LIMIT,
        )
        if not hits:
            LOGGER.info("No match for person (name only): %s", pkey)
            return NOT_FOUND
        if len(hits) > 1:
            LOGGER.warning(
                "Several matches for person (name only), not assigning: %s (%d records)",
                pkey,
                len(hits),
            )
            return AMBIGUOUS
        pid = hits[0].get("canonicalPersonId")
        if not pid:
            LOGGER.info("Single match for %s carries no canonical id yet", pkey)
            return NOT_FOUND
        LOGGER.info("Match via person (name only): %s -> %s", pkey, pid)
        return MatchResult.found(pid, "person")
