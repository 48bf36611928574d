"""Unit tests for person and competence-center keys."""
import pytest

from utilhub.identity.keys import (
    cc_key,
    join_person_name,
    normalize_cc,
    normalize_person,
    person_key,
    split_person_name,
)


def test_normalize_person_collapses_whitespace_and_comma():
    assert normalize_person("  Müller ,Jan ") == "Müller, Jan"
    assert normalize_person("Müller,   Jan") == "Müller, Jan"
    assert normalize_person(None) == ""
    assert normalize_person(float("nan")) == ""


def test_person_key_is_case_insensitive():
    assert person_key("Müller, Jan") == person_key("MÜLLER,JAN")
    assert person_key("müller, jan") == "MÜLLER, JAN"


def test_cc_key_normalizes_dashes_and_blanks():
    assert normalize_cc("CC – SAP") == "CC - SAP"
    assert cc_key("cc  -  sap") == "CC - SAP"
    assert cc_key("") is None
    assert cc_key(None) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Müller, Jan", ("Müller", "Jan")),
        ("Jan Müller", ("Müller", "Jan")),
        ("Anna Maria Schmidt", ("Schmidt", "Anna Maria")),
        ("Cher", ("Cher", "")),
        ("", ("", "")),
    ],
)
def test_split_person_name(raw, expected):
    assert split_person_name(raw) == expected


def test_join_person_name():
    assert join_person_name(" Müller ", "Jan") == "Müller, Jan"
    assert join_person_name("Müller", None) == "Müller"
    assert join_person_name(None, None) == ""
