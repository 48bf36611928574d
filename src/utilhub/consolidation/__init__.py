"""
Consolidation of the two weekly feeds into person-week records.
"""

from .consolidator import (
    ConsolidationResult,
    SeriesConsolidator,
    load_consolidated,
    summarize_consolidated,
)

__all__ = [
    "ConsolidationResult",
    "SeriesConsolidator",
    "load_consolidated",
    "summarize_consolidated",
]
