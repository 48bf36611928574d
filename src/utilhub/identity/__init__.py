"""
Identity resolution: person matching and canonical id propagation.
"""

from .dispatch import EffectDispatcher, LocalTriggerDispatcher
from .effects import EventOutcome, RecordConflict, SetPersonId
from .matcher import MatchResult, MatchStatus, PersonMatcher
from .propagator import IdentityPropagator

__all__ = [
    "EffectDispatcher",
    "LocalTriggerDispatcher",
    "EventOutcome",
    "RecordConflict",
    "SetPersonId",
    "MatchResult",
    "MatchStatus",
    "PersonMatcher",
    "IdentityPropagator",
]
