"""Unit tests for week label normalization."""
from datetime import date

import numpy as np
import pandas as pd
import pytest

from utilhub.standards.weeks import (
    WeekKey,
    current_week_key,
    is_week_label,
    normalize,
    normalize_week_labels,
    parse_kw_dash_year,
    parse_year_kw,
)


@pytest.mark.parametrize("label", ["KW34-2025", "KW34/25", "KW34(2025)", "2025-KW34"])
def test_all_dialects_normalize_to_same_week(label):
    assert normalize(label) == WeekKey(2025, 34)


@pytest.mark.parametrize(
    "label",
    ["kw34-2025", "KW 34-2025", "KW 34 / 25", "kw 34 (2025)", "2025-kw 34", "2025KW34", " KW34-2025 "],
)
def test_case_and_blank_variants(label):
    assert normalize(label) == WeekKey(2025, 34)


def test_supplemental_yy_slash_week_dialect():
    assert normalize("25/34") == WeekKey(2025, 34)
    assert normalize("25/7") == WeekKey(2025, 7)


@pytest.mark.parametrize("label", ["KW99-2025", "KW0-2025", "KW54/25", "garbage", "", "   ", "2025-34", "KW34"])
def test_unrecognized_labels_return_none(label):
    assert normalize(label) is None


def test_missing_values_return_none():
    assert normalize(None) is None
    assert normalize(float("nan")) is None
    assert normalize(np.nan) is None


def test_week_53_is_accepted():
    assert normalize("KW53-2026") == WeekKey(2026, 53)


def test_label_and_ordering():
    a = normalize("KW9-2025")
    b = normalize("2025-KW10")
    c = normalize("KW1/26")
    assert a.label == "2025-KW9"
    assert str(b) == "2025-KW10"
    assert sorted([c, b, a]) == [a, b, c]
    assert a < b < c


def test_from_label_raises_on_junk():
    assert WeekKey.from_label("KW34(2025)") == WeekKey(2025, 34)
    with pytest.raises(ValueError):
        WeekKey.from_label("Summe")


def test_single_dialect_parsers_are_strict():
    assert parse_kw_dash_year("2025-KW34") is None
    assert parse_year_kw("KW34-2025") is None


def test_is_week_label():
    assert is_week_label("KW10-2025")
    assert not is_week_label("Person")


def test_normalize_week_labels_series():
    s = pd.Series(["KW10-2025", "Team", "2025-KW10"])
    out = normalize_week_labels(s)
    assert out.iloc[0] == out.iloc[2] == WeekKey(2025, 10)
    assert out.iloc[1] is None


def test_current_week_key_uses_iso_calendar():
    # 2024-12-30 belongs to ISO week 1 of 2025
    assert current_week_key(date(2024, 12, 30)) == WeekKey(2025, 1)
    assert current_week_key(date(2025, 3, 5)) == WeekKey(2025, 10)
