"""Weekly utilization consolidation.

Merges the latest utilization-feed and staffing-plan-feed records into one
record per (person, ISO week):

  - week labels of both feeds are normalized to WeekKeys; unrecognized labels
    are dropped, never turned into extra weeks;
  - ``finalValue`` takes the precedence feed's value and falls back to the other;
  - ``source`` records which feed(s) supplied a value;
  - weeks without any value produce no record.

All frame operations are pure; :meth:`SeriesConsolidator.rebuild` is the only
method that writes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from ..common.config_validator import FeedsConfig
from ..identity.keys import normalize_person, person_key
from ..standards.weeks import WeekKey, current_week_key, normalize_week_labels
from ..store.base import RecordStore, StoredRecord, server_timestamp
from ..store.batching import BatchWriter


LOGGER = logging.getLogger("utilhub.consolidation")

AUSLASTUNG_VALUE = "auslastungValue"
EINSATZPLAN_VALUE = "einsatzplanValue"
SOURCE_BOTH = "both"

OUTPUT_COLUMNS: List[str] = [
    "person",
    "personKey",
    "isoYear",
    "isoWeek",
    "week",
    AUSLASTUNG_VALUE,
    EINSATZPLAN_VALUE,
    "finalValue",
    "source",
    "isHistorical",
    "canonicalPersonId",
    "competenceCenter",
    "team",
    "lineOfBusiness",
    "careerLevel",
]

# Metadata carried onto consolidated rows: field -> feed order (0 = utilization)
META_PRECEDENCE: Dict[str, tuple] = {
    "canonicalPersonId": (0, 1),
    "competenceCenter": (0, 1),
    "team": (0, 1),
    "lineOfBusiness": (0, 1),
    "careerLevel": (1, 0),
}


@dataclass
class ConsolidationResult:
    records: pd.DataFrame
    persons: int = 0
    written: int = 0
    superseded: int = 0
    unrecognized_labels: List[str] = field(default_factory=list)
    batches: int = 0


def latest_by_person(records: List[StoredRecord]) -> Dict[str, StoredRecord]:
    """Index latest records by person key; the highest upload version wins."""
    out: Dict[str, StoredRecord] = {}
    for rec in records:
        key = rec.get("personKey") or person_key(rec.get("person"))
        if not key:
            continue
        cur = out.get(key)
        if cur is not None and (cur.get("ccKey") or None) != (rec.get("ccKey") or None):
            LOGGER.warning(
                "Records %s/%s and %s/%s share person '%s' across competence centers (%s, %s); keeping one series",
                cur.feed,
                cur.doc_id,
                rec.feed,
                rec.doc_id,
                key,
                cur.get("ccKey"),
                rec.get("ccKey"),
            )
        if cur is None or int(rec.get("uploadVersion") or 0) > int(cur.get("uploadVersion") or 0):
            out[key] = rec
    return out


def weekly_long_frame(records: Dict[str, StoredRecord], value_col: str) -> tuple[pd.DataFrame, List[str]]:
    """Explode ``weeklyValues`` into (personKey, isoYear, isoWeek, value).

    Non-numeric and non-finite values are treated as missing. When several raw
    labels of one record name the same week, the first numeric one in label
    order is kept. Returns the frame and the sorted unrecognized labels.
    """
    rows = []
    for pkey, rec in records.items():
        for order, (label, value) in enumerate((rec.get("weeklyValues") or {}).items()):
            rows.append({"personKey": pkey, "rawLabel": label, "labelOrder": order, value_col: value})
    df = pd.DataFrame(rows, columns=["personKey", "rawLabel", "labelOrder", value_col])

    df[value_col] = pd.to_numeric(df[value_col], errors="coerce").astype("float64")
    df[value_col] = df[value_col].where(np.isfinite(df[value_col]))

    keys = normalize_week_labels(df["rawLabel"])
    recognized = keys.notna()
    unrecognized = sorted({str(x) for x in df.loc[~recognized, "rawLabel"]})

    df = df.loc[recognized].copy()
    keys = keys.loc[recognized]
    df["isoYear"] = keys.map(lambda k: k.iso_year).astype("int64")
    df["isoWeek"] = keys.map(lambda k: k.iso_week).astype("int64")
    df = df.dropna(subset=[value_col])
    df = df.sort_values(["personKey", "isoYear", "isoWeek", "labelOrder"], kind="mergesort")
    df = df.drop_duplicates(subset=["personKey", "isoYear", "isoWeek"], keep="first")
    return df[["personKey", "isoYear", "isoWeek", value_col]].reset_index(drop=True), unrecognized


def _person_meta(
    utilization: Dict[str, StoredRecord],
    staffing: Dict[str, StoredRecord],
) -> pd.DataFrame:
    rows = []
    for pkey in sorted(set(utilization) | set(staffing)):
        sources = (utilization.get(pkey), staffing.get(pkey))
        display = next((normalize_person(s.get("person")) for s in sources if s is not None and s.get("person")), pkey)
        row: Dict[str, Any] = {"personKey": pkey, "person": display}
        for fld, order in META_PRECEDENCE.items():
            row[fld] = next(
                (sources[i].get(fld) for i in order if sources[i] is not None and sources[i].get(fld)),
                None,
            )
        rows.append(row)
    return pd.DataFrame(rows, columns=["personKey", "person", *META_PRECEDENCE.keys()])


def consolidate_frames(
    utilization: Dict[str, StoredRecord],
    staffing: Dict[str, StoredRecord],
    current: WeekKey,
    precedence_first: bool = True,
    source_names: tuple[str, str] = ("auslastung", "einsatzplan"),
) -> tuple[pd.DataFrame, List[str]]:
    """Build consolidated rows from person-indexed records of both feeds.

    ``precedence_first`` True lets the utilization value win when both feeds
    have one; False lets the staffing-plan value win.
    """
    aus, bad_a = weekly_long_frame(utilization, AUSLASTUNG_VALUE)
    ein, bad_e = weekly_long_frame(staffing, EINSATZPLAN_VALUE)
    unrecognized = sorted(set(bad_a) | set(bad_e))

    merged = aus.merge(ein, on=["personKey", "isoYear", "isoWeek"], how="outer")
    if merged.empty:
        return pd.DataFrame(columns=OUTPUT_COLUMNS), unrecognized

    a = merged[AUSLASTUNG_VALUE]
    e = merged[EINSATZPLAN_VALUE]
    primary, secondary = (a, e) if precedence_first else (e, a)
    merged["finalValue"] = primary.where(primary.notna(), secondary)
    merged["source"] = np.select(
        [a.notna() & e.notna(), a.notna()],
        [SOURCE_BOTH, source_names[0]],
        default=source_names[1],
    )
    merged["isHistorical"] = (merged["isoYear"] < current.iso_year) | (
        (merged["isoYear"] == current.iso_year) & (merged["isoWeek"] < current.iso_week)
    )
    merged["isoYear"] = merged["isoYear"].astype("int64")
    merged["isoWeek"] = merged["isoWeek"].astype("int64")
    merged["week"] = merged["isoYear"].astype(str) + "-KW" + merged["isoWeek"].astype(str)

    out = merged.merge(_person_meta(utilization, staffing), on="personKey", how="left")
    out = out.sort_values(["person", "isoYear", "isoWeek"], kind="mergesort").reset_index(drop=True)
    return out[OUTPUT_COLUMNS], unrecognized


def _plain(value: Any) -> Any:
    """Convert numpy/pandas scalars to JSON-friendly Python values."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NA:
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    return value


def frame_to_documents(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [{k: _plain(v) for k, v in rec.items()} for rec in df.to_dict("records")]


def consolidated_doc_id(person: str, week_label: str) -> str:
    return f"{person}__{week_label}"


class SeriesConsolidator:
    def __init__(
        self,
        store: RecordStore,
        feeds: Optional[FeedsConfig] = None,
        precedence: Optional[str] = None,
        batch_limit: Optional[int] = None,
        clock: Callable[[], str] = server_timestamp,
    ) -> None:
        self.store = store
        self.feeds = feeds or FeedsConfig()
        self.utilization_feed, self.staffing_feed = self.feeds.time_series
        self.precedence = precedence or self.utilization_feed
        if self.precedence not in self.feeds.time_series:
            raise ValueError(f"precedence must be one of {self.feeds.time_series}, got '{self.precedence}'")
        self.batch_limit = batch_limit
        self.clock = clock

    def build(self, today: Optional[date] = None) -> tuple[pd.DataFrame, List[str]]:
        """Read both feeds' latest records and build the consolidated frame."""
        utilization = latest_by_person(self.store.query(self.utilization_feed, {"isLatest": True}))
        staffing = latest_by_person(self.store.query(self.staffing_feed, {"isLatest": True}))
        LOGGER.info(
            "Consolidating %d %s and %d %s persons",
            len(utilization),
            self.utilization_feed,
            len(staffing),
            self.staffing_feed,
        )
        return consolidate_frames(
            utilization,
            staffing,
            current_week_key(today),
            precedence_first=self.precedence == self.utilization_feed,
            source_names=(self.utilization_feed, self.staffing_feed),
        )

    def rebuild(self, today: Optional[date] = None) -> ConsolidationResult:
        """Rebuild the consolidated record set.

        Previously latest records are marked not-latest first; the new records
        are then upserted with ``isLatest=True`` under ``person__YYYY-KWww`` so
        repeated runs overwrite instead of duplicating.
        """
        frame, unrecognized = self.build(today)
        if unrecognized:
            LOGGER.info("Skipped %d unrecognized week labels (sample: %s)", len(unrecognized), unrecognized[:25])

        target = self.feeds.consolidated
        now = self.clock()
        previous = self.store.query(target, {"isLatest": True})
        with BatchWriter(self.store, target, self.batch_limit) as writer:
            for rec in previous:
                writer.set(rec.doc_id, {"isLatest": False, "updatedAt": now})
        batches = writer.commits

        with BatchWriter(self.store, target, self.batch_limit) as writer:
            for doc in frame_to_documents(frame):
                doc.update({"isLatest": True, "updatedAt": now})
                writer.set(consolidated_doc_id(doc["person"], doc["week"]), doc, merge=True)
        batches += writer.commits

        result = ConsolidationResult(
            records=frame,
            persons=int(frame["personKey"].nunique()) if not frame.empty else 0,
            written=writer.written,
            superseded=len(previous),
            unrecognized_labels=unrecognized,
            batches=batches,
        )
        LOGGER.info(
            "Consolidation wrote %d records for %d persons (%d previously latest) in %d batch(es)",
            result.written,
            result.persons,
            result.superseded,
            result.batches,
        )
        return result


def load_consolidated(
    store: RecordStore,
    feed: str = "utilizationData",
    person: Optional[str] = None,
    is_historical: Optional[bool] = None,
) -> pd.DataFrame:
    """Latest consolidated records ordered by (person, isoYear, isoWeek)."""
    filters: Dict[str, Any] = {"isLatest": True}
    if person is not None:
        filters["personKey"] = person_key(person)
    if is_historical is not None:
        filters["isHistorical"] = bool(is_historical)
    docs = [rec.data for rec in store.query(feed, filters)]
    df = pd.DataFrame(docs)
    if df.empty:
        return pd.DataFrame(columns=OUTPUT_COLUMNS + ["isLatest"])
    return df.sort_values(["person", "isoYear", "isoWeek"], kind="mergesort").reset_index(drop=True)


def summarize_consolidated(df: pd.DataFrame) -> Dict[str, Any]:
    """Counts by source plus per-person feed coverage."""
    if df.empty:
        return {
            "total_records": 0,
            "persons": 0,
            "by_source": {},
            "persons_with_both_feeds": 0,
            "historical_records": 0,
            "forecast_records": 0,
        }
    by_source = {str(k): int(v) for k, v in df["source"].value_counts().sort_index().items()}
    per_person = df.groupby("personKey").agg(
        has_aus=(AUSLASTUNG_VALUE, lambda s: bool(s.notna().any())),
        has_ein=(EINSATZPLAN_VALUE, lambda s: bool(s.notna().any())),
    )
    historical = df["isHistorical"].astype(bool)
    return {
        "total_records": int(len(df)),
        "persons": int(df["personKey"].nunique()),
        "by_source": by_source,
        "persons_with_both_feeds": int((per_person["has_aus"] & per_person["has_ein"]).sum()),
        "historical_records": int(historical.sum()),
        "forecast_records": int((~historical).sum()),
    }
