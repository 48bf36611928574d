"""Week label normalization for the utilization and staffing-plan feeds.

Spreadsheet headers name the same ISO week in several dialects that changed over
time. Every parser here works on the numeric (year, week) pair only and returns
``None`` for labels it does not recognize, so callers can skip them.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

import pandas as pd


MIN_WEEK = 1
MAX_WEEK = 53


@dataclass(frozen=True, order=True)
class WeekKey:
    """Canonical ISO (year, week) pair, ordered by year then week."""

    iso_year: int
    iso_week: int

    @property
    def label(self) -> str:
        return f"{self.iso_year}-KW{self.iso_week}"

    @classmethod
    def from_label(cls, raw: str) -> "WeekKey":
        key = normalize(raw)
        if key is None:
            raise ValueError(f"Unrecognized week label: {raw!r}")
        return key

    def __str__(self) -> str:
        return self.label


_KW_DASH_YEAR = re.compile(r"^KW\s*(\d{1,2})\s*-\s*(\d{4})$", re.IGNORECASE)
_KW_SLASH_YY = re.compile(r"^KW\s*(\d{1,2})\s*/\s*(\d{2})$", re.IGNORECASE)
_KW_PAREN_YEAR = re.compile(r"^KW\s*(\d{1,2})\s*\(\s*(\d{4})\s*\)$", re.IGNORECASE)
_YEAR_KW = re.compile(r"^(\d{4})\s*[-/]?\s*KW\s*(\d{1,2})$", re.IGNORECASE)
_YY_SLASH_WEEK = re.compile(r"^(\d{2})\s*/\s*(\d{1,2})$")


def _build(year: int, week: int) -> Optional[WeekKey]:
    if MIN_WEEK <= week <= MAX_WEEK:
        return WeekKey(year, week)
    return None


def parse_kw_dash_year(raw: str) -> Optional[WeekKey]:
    """Parse 'KW34-2025' / 'KW 34 - 2025'."""
    m = _KW_DASH_YEAR.fullmatch(raw)
    if not m:
        return None
    return _build(int(m.group(2)), int(m.group(1)))


def parse_kw_slash_yy(raw: str) -> Optional[WeekKey]:
    """Parse 'KW34/25'; the two-digit year is read as 2000 + yy."""
    m = _KW_SLASH_YY.fullmatch(raw)
    if not m:
        return None
    return _build(2000 + int(m.group(2)), int(m.group(1)))


def parse_kw_paren_year(raw: str) -> Optional[WeekKey]:
    """Parse 'KW34(2025)'."""
    m = _KW_PAREN_YEAR.fullmatch(raw)
    if not m:
        return None
    return _build(int(m.group(2)), int(m.group(1)))


def parse_year_kw(raw: str) -> Optional[WeekKey]:
    """Parse '2025-KW34', '2025KW34', '2025/KW 34'."""
    m = _YEAR_KW.fullmatch(raw)
    if not m:
        return None
    return _build(int(m.group(1)), int(m.group(2)))


def parse_yy_slash_week(raw: str) -> Optional[WeekKey]:
    """Parse the bare upload key '25/34' (yy/week)."""
    m = _YY_SLASH_WEEK.fullmatch(raw)
    if not m:
        return None
    return _build(2000 + int(m.group(1)), int(m.group(2)))


_PARSERS = (
    parse_kw_dash_year,
    parse_kw_slash_yy,
    parse_kw_paren_year,
    parse_year_kw,
    parse_yy_slash_week,
)


def normalize(raw_label: object) -> Optional[WeekKey]:
    """Return the WeekKey for ``raw_label`` or None when it is not recognized.

    Accepted dialects (case-insensitive, optional blanks after 'KW'):
      - 'KW{week}-{year}'
      - 'KW{week}/{yy}'
      - 'KW{week}({year})'
      - '{year}-KW{week}'
      - '{yy}/{week}'
    """
    if raw_label is None:
        return None
    if isinstance(raw_label, float) and pd.isna(raw_label):
        return None
    s = str(raw_label).strip()
    if not s:
        return None
    for parser in _PARSERS:
        key = parser(s)
        if key is not None:
            return key
    return None


def normalize_week_labels(series: pd.Series) -> pd.Series:
    """Vectorized :func:`normalize`; unrecognized labels become None."""
    return series.map(normalize)


def is_week_label(raw_label: object) -> bool:
    return normalize(raw_label) is not None


def current_week_key(today: Optional[date] = None) -> WeekKey:
    """WeekKey of ``today`` (defaults to the local date) per ISO-8601."""
    d = today or date.today()
    iso_year, iso_week, _ = d.isocalendar()
    return WeekKey(int(iso_year), int(iso_week))
