from __future__ import annotations

import re
from typing import Any, Optional, Tuple

import pandas as pd


_WS = re.compile(r"\s+")
_DASHES = re.compile(r"[–—−]")


def _is_blank(x: Any) -> bool:
    if x is None:
        return True
    if isinstance(x, float) and pd.isna(x):
        return True
    return not str(x).strip()


def _collapse_ws(s: str) -> str:
    return _WS.sub(" ", s).strip()


def normalize_person(x: Any) -> str:
    """Display form of a person name: whitespace collapsed, casing preserved.

    Also tightens 'Last ,First' / 'Last,First' to 'Last, First'.
    """

    if _is_blank(x):
        return ""
    s = _collapse_ws(str(x))
    s = re.sub(r"\s*,\s*", ", ", s)
    return s


def person_key(x: Any) -> str:
    """Match key for person names: normalized display form, upper-cased."""

    return normalize_person(x).upper()


def normalize_cc(x: Any) -> str:
    if _is_blank(x):
        return ""
    return _collapse_ws(_DASHES.sub("-", str(x)))


def cc_key(x: Any) -> Optional[str]:
    """Match key for competence centers; None when the value is blank."""

    s = normalize_cc(x)
    return s.upper() if s else None


def split_person_name(full_name: Any) -> Tuple[str, str]:
    """Split a display name into (last, first).

    'Müller, Jan' -> ('Müller', 'Jan'); 'Jan Müller' -> ('Müller', 'Jan');
    a single token is returned as the last name.
    """

    s = normalize_person(full_name)
    if not s:
        return "", ""
    m = re.match(r"^([^,]+),\s*(.+)$", s)
    if m:
        return m.group(1).strip(), m.group(2).strip()
    m = re.match(r"^(.+)\s+(\S+)$", s)
    if m:
        return m.group(2).strip(), m.group(1).strip()
    return s, ""


def join_person_name(last: Any, first: Any) -> str:
    """Build the 'Last, First' display form from separate name columns."""

    last_s = "" if _is_blank(last) else _collapse_ws(str(last))
    first_s = "" if _is_blank(first) else _collapse_ws(str(first))
    if last_s and first_s:
        return f"{last_s}, {first_s}"
    return last_s or first_s
