"""Logging utilities for utilhub.

Centralizes handler setup and timing helpers so the CLI commands and library
modules emit to the same place:
  - console (stdout)
  - ``<logs_dir>/<file_name>`` (machine-friendly format)

Library modules only call ``logging.getLogger("utilhub.<area>")``; handlers are
attached once by :func:`get_logger` from the CLI.
"""
from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Dict, Optional

from .common.config_validator import EngineConfig


SYSTEM_FMT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER_NAME = "utilhub"


def _ensure_logs_dir(config: EngineConfig) -> Path:
    logs_dir = Path(config.paths.logs_dir).expanduser().resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _safe_add_file_handler(logger: logging.Logger, path: Path, level: int) -> None:
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(SYSTEM_FMT, datefmt=DATE_FMT))
        logger.addHandler(fh)
    except OSError as exc:
        # Console-only from here on
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(path), exc)


def get_logger(config: EngineConfig, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Return the package logger with console + file handlers.

    Handlers are reset on every call so repeated CLI invocations in one process
    do not duplicate output. Child loggers (``utilhub.identity`` etc.) propagate
    here.
    """
    level = getattr(logging, config.logging.level, logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(SYSTEM_FMT, datefmt=DATE_FMT))
    logger.addHandler(sh)

    try:
        logs_dir = _ensure_logs_dir(config)
    except OSError as exc:
        logger.warning("[WARNING] Logs directory unavailable (%s); console only", exc)
        return logger
    _safe_add_file_handler(logger, logs_dir / config.logging.file_name, level)
    logger.debug("Logger initialised at %s", logs_dir / config.logging.file_name)
    return logger


def start_phase_timer(phase_name: str) -> float:
    """Start a timer for a given command and return the perf counter."""
    return time.perf_counter()


def end_phase_timer(
    phase_name: str,
    start_time: float,
    timing_dict: Dict[str, float],
    logger: Optional[logging.Logger] = None,
) -> float:
    """End timer, record to ``timing_dict`` and log the duration."""
    elapsed = time.perf_counter() - float(start_time)
    timing_dict[phase_name] = float(elapsed)
    if logger is not None:
        logger.info("%s completed in %.2f seconds", phase_name, elapsed)
    return elapsed


def log_system_event(logger: logging.Logger, message: str):
    logger.info("[SYSTEM] %s", message)


def log_warning(logger: logging.Logger, message: str):
    logger.warning("[WARNING] %s", message)


def log_error(logger: logging.Logger, message: str):
    logger.error("[ERROR] %s", message)
