"""Unit tests for logger setup and timing helpers."""
import logging

from utilhub.common.config_validator import load_and_validate_config
from utilhub.logging_utils import end_phase_timer, get_logger, log_system_event, start_phase_timer


def test_get_logger_writes_to_logs_dir(tmp_path):
    config = load_and_validate_config({"paths": {"logs_dir": str(tmp_path / "logs")}, "logging": {"file_name": "t.log"}})

    logger = get_logger(config, name="utilhub.test")
    log_system_event(logger, "hello")
    for handler in logger.handlers:
        handler.flush()

    text = (tmp_path / "logs" / "t.log").read_text(encoding="utf-8")
    assert "| INFO | utilhub.test | [SYSTEM] hello" in text
    assert len(get_logger(config, name="utilhub.test").handlers) == 2


def test_phase_timer_records_duration(caplog):
    timings = {}
    start = start_phase_timer("upload")
    with caplog.at_level(logging.INFO, logger="utilhub.test.timer"):
        elapsed = end_phase_timer("upload", start, timings, logging.getLogger("utilhub.test.timer"))
    assert timings["upload"] == elapsed >= 0
    assert "upload completed in" in caplog.text
