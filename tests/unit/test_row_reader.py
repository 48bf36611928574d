"""Unit tests for turning upload sheets into feed rows."""
import pandas as pd
import pytest

from utilhub.ingestion.row_reader import detect_columns, read_upload, rows_from_frame, week_columns


def test_detect_columns_is_case_insensitive():
    cols = detect_columns(["Mitarbeiter", "Hierarchie Slicer - CC", "Teamname", "LBS", "KW10-2025"])
    assert cols == {
        "person": "Mitarbeiter",
        "competenceCenter": "Hierarchie Slicer - CC",
        "team": "Teamname",
        "careerLevel": "LBS",
    }


def test_week_columns_keep_original_headers():
    assert week_columns(["Person", "KW10-2025", "2025-KW11", "Summe", "25/12"]) == ["KW10-2025", "2025-KW11", "25/12"]


def test_rows_from_person_column():
    df = pd.DataFrame(
        {
            "Person": ["Müller, Jan (12345)", "Schmidt, Eva"],
            "CC": ["CC SAP", None],
            "KW10-2025": ["80", None],
            "KW11/25": ["75,5", "100"],
            "Kommentar": ["x", "y"],
        }
    )

    rows = rows_from_frame(df)

    assert rows[0]["person"] == "Müller, Jan"
    assert rows[0]["competenceCenter"] == "CC SAP"
    assert rows[0]["weeklyValues"] == {"KW10-2025": 80.0, "KW11/25": 75.5}
    assert rows[1]["competenceCenter"] is None
    assert rows[1]["weeklyValues"] == {"KW11/25": 100.0}


def test_rows_from_separate_name_columns():
    df = pd.DataFrame({"Nachname": ["Müller"], "Vorname": ["Jan"], "2025-KW10": [60]})
    assert rows_from_frame(df)[0]["person"] == "Müller, Jan"


def test_missing_person_columns_raise():
    with pytest.raises(ValueError):
        rows_from_frame(pd.DataFrame({"Team": ["Blue"], "KW10-2025": [1]}))


def test_read_upload_csv(tmp_path):
    path = tmp_path / "plan.csv"
    path.write_text(' Person ,KW10-2025\n"Müller, Jan",80\n', encoding="utf-8-sig")

    df = read_upload(path)

    assert list(df.columns) == ["Person", "KW10-2025"]
    assert df.iloc[0]["KW10-2025"] == "80"


def test_read_upload_excel(tmp_path):
    path = tmp_path / "util.xlsx"
    pd.DataFrame({"Person": ["Müller, Jan"], "KW10-2025": [80]}).to_excel(path, index=False, engine="openpyxl")

    rows = rows_from_frame(read_upload(path))

    assert rows == [
        {
            "person": "Müller, Jan",
            "competenceCenter": None,
            "team": None,
            "lineOfBusiness": None,
            "careerLevel": None,
            "canonicalPersonId": None,
            "weeklyValues": {"KW10-2025": 80.0},
        }
    ]


def test_read_upload_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_upload(tmp_path / "missing.csv")
    empty = tmp_path / "empty.csv"
    empty.write_text("Person,KW10-2025\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_upload(empty)
