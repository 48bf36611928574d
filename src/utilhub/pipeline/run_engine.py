"""Command-line runner for uploads, consolidation, backfill and reporting.

All commands share one YAML config (``--config``) and a JSON-file record store
under ``paths.store_dir``. Uploads and backfills run with the local trigger
dispatcher attached, so identity propagation settles before the command exits.
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

from ..common.config_validator import EngineConfig, load_config
from ..common.errors import UtilhubError
from ..consolidation import SeriesConsolidator, load_consolidated, summarize_consolidated
from ..identity import IdentityPropagator, LocalTriggerDispatcher
from ..ingestion import UploadVersioner
from ..ingestion.row_reader import read_upload, rows_from_frame
from ..logging_utils import (
    end_phase_timer,
    get_logger,
    log_error,
    log_system_event,
    log_warning,
    start_phase_timer,
)
from ..store import JsonFileRecordStore


DEFAULT_CONFIG = "config/config.yaml"


def _open_store(config: EngineConfig) -> JsonFileRecordStore:
    return JsonFileRecordStore(config.paths.store_dir, batch_limit=config.store.batch_limit)


def _dispatcher(config: EngineConfig, store: JsonFileRecordStore) -> LocalTriggerDispatcher:
    propagator = IdentityPropagator(store, feeds=config.feeds)
    return LocalTriggerDispatcher(store, propagator, max_deliveries=config.store.max_deliveries)


def run_upload(
    config: EngineConfig,
    feed: str,
    input_path: str,
    file_name: Optional[str] = None,
    sheet_name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, object]:
    """Read one spreadsheet, stamp it as the next upload of ``feed`` and propagate ids."""
    logger = logger or logging.getLogger("utilhub")
    if feed not in set(config.feeds.all_feeds) | set(config.feeds.time_series):
        raise ValueError(f"Unknown feed '{feed}'; expected one of {config.feeds.all_feeds}")
    rows = rows_from_frame(read_upload(input_path, sheet_name=sheet_name))
    store = _open_store(config)
    versioner = UploadVersioner(
        store,
        batch_limit=config.store.batch_limit,
        history_feed=config.feeds.upload_history,
    )
    with _dispatcher(config, store) as dispatcher:
        result = versioner.stamp_upload(feed, rows, file_name or Path(input_path).name)
    summary = result.to_dict()
    summary["propagation"] = dict(dispatcher.status_counts)
    log_system_event(logger, f"Upload {feed} v{result.version}: {result.row_count} rows")
    return summary


def run_consolidate(
    config: EngineConfig,
    today: Optional[date] = None,
    export_path: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, object]:
    logger = logger or logging.getLogger("utilhub")
    store = _open_store(config)
    consolidator = SeriesConsolidator(
        store,
        feeds=config.feeds,
        precedence=config.consolidation.precedence,
        batch_limit=config.store.batch_limit,
    )
    result = consolidator.rebuild(today=today)
    if result.unrecognized_labels:
        log_warning(logger, f"{len(result.unrecognized_labels)} week labels were not recognized and skipped")
    if export_path:
        out = Path(export_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        if out.suffix.lower() == ".xlsx":
            result.records.to_excel(out, index=False, engine="openpyxl")
        else:
            result.records.to_csv(out, index=False)
        log_system_event(logger, f"Consolidated records exported to {out}")
    return {
        "records": int(len(result.records)),
        "persons": result.persons,
        "written": result.written,
        "superseded": result.superseded,
        "unrecognized_labels": len(result.unrecognized_labels),
        "batches": result.batches,
    }


def run_backfill(config: EngineConfig, logger: Optional[logging.Logger] = None) -> Dict[str, object]:
    logger = logger or logging.getLogger("utilhub")
    store = _open_store(config)
    with _dispatcher(config, store) as dispatcher:
        written = dispatcher.handler.backfill()
    log_system_event(logger, f"Backfill wrote {written} documents")
    return {"written": written, "propagation": dict(dispatcher.status_counts)}


def run_report(
    config: EngineConfig,
    person: Optional[str] = None,
    is_historical: Optional[bool] = None,
) -> pd.DataFrame:
    store = _open_store(config)
    return load_consolidated(store, feed=config.feeds.consolidated, person=person, is_historical=is_historical)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""

    parser = argparse.ArgumentParser(prog="utilhub", description="Utilization data engine")
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Stamp a spreadsheet as the next upload of a feed")
    upload.add_argument("--feed", required=True, help="Target feed collection")
    upload.add_argument("--input", required=True, help="CSV or Excel file")
    upload.add_argument("--file-name", default=None, help="Source file name to record (defaults to the input's)")
    upload.add_argument("--sheet", default=None, help="Excel sheet name")

    consolidate = sub.add_parser("consolidate", help="Rebuild the consolidated person-week records")
    consolidate.add_argument("--today", default=None, help="Reference date YYYY-MM-DD for isHistorical")
    consolidate.add_argument("--export", default=None, help="Optional CSV/XLSX export of the new records")

    sub.add_parser("backfill", help="Push every authoritative canonical id to the dependent feeds")

    report = sub.add_parser("report", help="Print consolidated records and a summary")
    report.add_argument("--person", default=None, help="Only this person ('Last, First')")
    span = report.add_mutually_exclusive_group()
    span.add_argument("--historical", action="store_true", help="Only weeks before the current week")
    span.add_argument("--forecast", action="store_true", help="Only the current and later weeks")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns a process exit code."""

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValidationError) as exc:
        parser.error(f"invalid configuration: {exc}")
    logger = get_logger(config)

    timings: Dict[str, float] = {}
    start = start_phase_timer(args.command)
    try:
        if args.command == "upload":
            summary = run_upload(config, args.feed, args.input, args.file_name, args.sheet, logger=logger)
        elif args.command == "consolidate":
            today = date.fromisoformat(args.today) if args.today else None
            summary = run_consolidate(config, today=today, export_path=args.export, logger=logger)
        elif args.command == "backfill":
            summary = run_backfill(config, logger=logger)
        else:
            historical = True if args.historical else (False if args.forecast else None)
            frame = run_report(config, person=args.person, is_historical=historical)
            if not frame.empty:
                print(frame.to_string(index=False))
            summary = summarize_consolidated(frame)
    except (FileNotFoundError, ValueError, UtilhubError) as exc:
        log_error(logger, f"{args.command} failed: {exc}")
        return 1
    finally:
        end_phase_timer(args.command, start, timings, logger)

    print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
