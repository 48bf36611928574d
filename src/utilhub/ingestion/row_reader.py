"""Boundary between tabular uploads and feed rows.

Turns a wide frame (identity columns plus one column per week label) into
RawFeedRecord-shaped mappings. Header matching is case-insensitive; every column
whose header is a recognized week label becomes a ``weeklyValues`` entry keyed by
the original header text.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from ..identity.keys import join_person_name
from ..standards.weeks import is_week_label
from .models import coerce_percent


COLUMN_ALIASES: Dict[str, List[str]] = {
    "person": ["person", "name", "mitarbeiter", "mitarbeiter (id)", "employee"],
    "last_name": ["nachname", "last name", "last_name"],
    "first_name": ["vorname", "first name", "first_name"],
    "competenceCenter": [
        "competencecenter",
        "competence center",
        "competence_center",
        "cc",
        "hierarchie slicer - cc",
    ],
    "team": ["team", "teamname"],
    "lineOfBusiness": ["lineofbusiness", "line of business", "business line", "lob"],
    "careerLevel": ["careerlevel", "career level", "karrierestufe", "lbs"],
    "canonicalPersonId": ["canonicalpersonid", "personid", "person_id", "employee id"],
}

_TRAILING_PAREN = re.compile(r"\([^)]*\)\s*$")


def _norm_header(h: Any) -> str:
    return " ".join(str(h).strip().lower().split())


def detect_columns(columns: Iterable[Any]) -> Dict[str, Any]:
    """Map canonical field names to the frame's actual headers."""
    by_norm = {_norm_header(c): c for c in columns}
    found: Dict[str, Any] = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in by_norm:
                found[field] = by_norm[alias]
                break
    return found


def week_columns(columns: Iterable[Any]) -> List[Any]:
    return [c for c in columns if is_week_label(c)]


def _cell(row: pd.Series, col: Optional[Any]) -> Any:
    if col is None:
        return None
    value = row.get(col)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if value is pd.NA:
        return None
    return value


def rows_from_frame(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a wide upload frame into feed row mappings."""
    cols = detect_columns(df.columns)
    weeks = week_columns(df.columns)
    if "person" not in cols and "last_name" not in cols:
        raise ValueError("Upload has no person or name columns")

    rows: List[Dict[str, Any]] = []
    for _, raw in df.iterrows():
        if "person" in cols:
            person = str(_cell(raw, cols["person"]) or "")
            person = _TRAILING_PAREN.sub("", person).strip()
        else:
            person = join_person_name(_cell(raw, cols.get("last_name")), _cell(raw, cols.get("first_name")))
        row: Dict[str, Any] = {"person": person}
        for field in ("competenceCenter", "team", "lineOfBusiness", "careerLevel", "canonicalPersonId"):
            row[field] = _cell(raw, cols.get(field))
        row["weeklyValues"] = {
            str(c).strip(): coerce_percent(_cell(raw, c)) for c in weeks if _cell(raw, c) is not None
        }
        rows.append(row)
    return rows


def read_upload(input_path: str | Path, sheet_name: Optional[str] = None) -> pd.DataFrame:
    """Read a CSV or Excel upload with string cells and trimmed headers."""
    p = Path(input_path)
    if not p.exists():
        raise FileNotFoundError(f"Input not found: {p}")
    ext = p.suffix.lower()
    if ext in (".xlsx", ".xlsm", ".xls"):
        df = pd.read_excel(p, sheet_name=sheet_name or 0, dtype=str, engine="openpyxl")
    else:
        df = pd.read_csv(p, dtype=str, encoding="utf-8-sig")
    df.columns = [str(c).strip() for c in df.columns]
    if df.shape[0] == 0:
        raise ValueError(f"Input file has no rows: {p}")
    return df
