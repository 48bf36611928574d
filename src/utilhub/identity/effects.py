"""Pure descriptions of the writes identity propagation wants performed."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Union


@dataclass(frozen=True)
class SetPersonId:
    feed: str
    doc_id: str
    person_id: str


@dataclass(frozen=True)
class RecordConflict:
    """The record holds ``previous`` while the authoritative feed says ``incoming``."""

    feed: str
    doc_id: str
    previous: str
    incoming: str


Effect = Union[SetPersonId, RecordConflict]


@dataclass
class EventOutcome:
    """What handling one write event did."""

    feed: str
    doc_id: str
    status: str  # applied | noop | ignored | aborted
    effects: List[Effect] = field(default_factory=list)
    written: int = 0
    detail: str = ""
