"""End-to-end: uploads with live id propagation, then consolidation and the CLI."""
import json
import logging
from datetime import date

import pytest

from utilhub.consolidation import SeriesConsolidator, load_consolidated
from utilhub.identity import IdentityPropagator, LocalTriggerDispatcher
from utilhub.ingestion import UploadVersioner
from utilhub.pipeline.run_engine import main
from utilhub.store import JsonFileRecordStore


UTILIZATION = [
    {"person": "Müller, Jan", "competenceCenter": "CC SAP", "canonicalPersonId": "P1", "weeklyValues": {"KW10-2025": 80, "KW11/25": 90}},
    {"person": "Schmidt, Eva", "competenceCenter": "CC Cloud", "canonicalPersonId": "P3", "weeklyValues": {"2025-KW09": 100}},
]

STAFFING = [
    {"person": "Schmidt, Eva", "competenceCenter": "CC Cloud", "weeklyValues": {"KW10(2025)": 60, "KW12-2025": 50}},
    {"person": "Weber, Tom", "weeklyValues": {"KW10-2025": 40}},
]


@pytest.fixture
def engine(store):
    versioner = UploadVersioner(store)
    with LocalTriggerDispatcher(store, IdentityPropagator(store), max_deliveries=500) as triggers:
        yield store, versioner, triggers


def test_staffing_before_utilization_gets_ids_through_outbound_propagation(engine):
    store, versioner, triggers = engine
    versioner.stamp_upload("einsatzplan", STAFFING, "plan.xlsx")
    assert all(r.get("canonicalPersonId") is None for r in store.query("einsatzplan"))

    versioner.stamp_upload("auslastung", UTILIZATION, "util.xlsx")

    ids = {r.get("person"): r.get("canonicalPersonId") for r in store.query("einsatzplan", {"isLatest": True})}
    assert ids == {"Schmidt, Eva": "P3", "Weber, Tom": None}
    assert triggers.status_counts["aborted"] == 0


def test_dependent_upload_resolves_inbound_and_flags_conflicts(engine):
    store, versioner, _ = engine
    versioner.stamp_upload("auslastung", UTILIZATION, "util.xlsx")

    versioner.stamp_upload(
        "mitarbeiter",
        [
            {"person": "Schmidt, Eva", "competenceCenter": "CC Cloud"},
            {"person": "Müller, Jan", "competenceCenter": "CC SAP", "canonicalPersonId": "P9"},
            {"person": "Müller, Jan"},
        ],
        "master.xlsx",
    )

    by_cc = {(r.get("person"), r.get("competenceCenter")): r for r in store.query("mitarbeiter", {"isLatest": True})}
    assert by_cc[("Schmidt, Eva", "CC Cloud")].get("canonicalPersonId") == "P3"
    # the last duplicate row wins and resolves through the unique name
    assert len(by_cc) == 2
    assert by_cc[("Müller, Jan", None)].get("canonicalPersonId") == "P1"


def test_conflicting_dependent_id_is_preserved(engine):
    store, versioner, _ = engine
    versioner.stamp_upload("auslastung", UTILIZATION, "util.xlsx")

    versioner.stamp_upload(
        "einsatzplan",
        [{"person": "Schmidt, Eva", "competenceCenter": "CC Cloud", "canonicalPersonId": "P9"}],
        "plan.xlsx",
    )

    rec = store.query("einsatzplan", {"isLatest": True})[0]
    assert rec.get("canonicalPersonId") == "P9"
    assert rec.get("personIdConflict")["previous"] == "P9"
    assert rec.get("personIdConflict")["incoming"] == "P3"


def test_reupload_and_consolidation_are_idempotent(engine):
    store, versioner, _ = engine
    for _ in range(2):
        versioner.stamp_upload("auslastung", UTILIZATION, "util.xlsx")
        versioner.stamp_upload("einsatzplan", STAFFING, "plan.xlsx")
        SeriesConsolidator(store).rebuild(today=date(2025, 3, 5))

    assert store.count("auslastung") == 2
    assert store.count("einsatzplan") == 2
    frame = load_consolidated(store)
    assert list(zip(frame["person"], frame["week"], frame["source"])) == [
        ("Müller, Jan", "2025-KW10", "auslastung"),
        ("Müller, Jan", "2025-KW11", "auslastung"),
        ("Schmidt, Eva", "2025-KW9", "auslastung"),
        ("Schmidt, Eva", "2025-KW10", "einsatzplan"),
        ("Schmidt, Eva", "2025-KW12", "einsatzplan"),
        ("Weber, Tom", "2025-KW10", "einsatzplan"),
    ]
    eva = frame[frame["person"] == "Schmidt, Eva"]
    assert set(eva["canonicalPersonId"]) == {"P3"}


class TestCli:
    @pytest.fixture(autouse=True)
    def reset_cli_logger(self):
        yield
        logging.getLogger("utilhub").handlers = []

    @pytest.fixture
    def config_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            f"""
paths:
  store_dir: {tmp_path / 'store'}
  logs_dir: {tmp_path / 'logs'}
store:
  batch_limit: 2
""".strip(),
            encoding="utf-8",
        )
        return path

    def test_upload_consolidate_report(self, tmp_path, config_path, capsys):
        util = tmp_path / "util.csv"
        util.write_text(
            'Person,CC,PersonID,KW10-2025,KW11/25\n"Müller, Jan",CC SAP,P1,80,\n"Schmidt, Eva",CC Cloud,P3,,90\n',
            encoding="utf-8",
        )
        plan = tmp_path / "plan.csv"
        plan.write_text(
            'Nachname,Vorname,CC,2025-KW10,Summe\nMüller,Jan,CC SAP,60,60\nWeber,Tom,,40,40\n',
            encoding="utf-8",
        )
        export = tmp_path / "out" / "consolidated.csv"

        assert main(["--config", str(config_path), "upload", "--feed", "auslastung", "--input", str(util)]) == 0
        assert main(["--config", str(config_path), "upload", "--feed", "einsatzplan", "--input", str(plan)]) == 0
        assert main(["--config", str(config_path), "backfill"]) == 0
        assert (
            main(["--config", str(config_path), "consolidate", "--today", "2025-03-05", "--export", str(export)]) == 0
        )
        capsys.readouterr()
        assert main(["--config", str(config_path), "report", "--forecast"]) == 0

        lines = capsys.readouterr().out.splitlines()
        summary = json.loads("\n".join(lines[lines.index("{"):]))
        assert summary["total_records"] == 3
        assert summary["forecast_records"] == 3
        assert summary["by_source"] == {"auslastung": 1, "both": 1, "einsatzplan": 1}
        assert export.exists()

        store = JsonFileRecordStore(tmp_path / "store")
        plan_ids = {r.get("person"): r.get("canonicalPersonId") for r in store.query("einsatzplan")}
        assert plan_ids == {"Müller, Jan": "P1", "Weber, Tom": None}
        assert store.count("uploadHistory") == 2
        assert (tmp_path / "logs" / "utilhub.log").exists()

    def test_unknown_feed_fails(self, tmp_path, config_path):
        util = tmp_path / "util.csv"
        util.write_text("Person,KW10-2025\nX,1\n", encoding="utf-8")
        assert main(["--config", str(config_path), "upload", "--feed", "nope", "--input", str(util)]) == 1

    def test_missing_config_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--config", str(tmp_path / "missing.yaml"), "backfill"])
