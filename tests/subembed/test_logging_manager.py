from __future__ import annotations

import json
import logging

from subembed import logging_manager as log_mgr


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("subembed", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_promotes_known_fields():
    payload = json.loads(
        log_mgr.JSONLogFormatter().format(_record(event="processor.job.done", job_index=2, color="red"))
    )

    assert payload["message"] == "hello"
    assert payload["event"] == "processor.job.done"
    assert payload["job_index"] == 2
    assert payload["extra"] == {"color": "red"}


def test_log_context_is_scoped():
    with log_mgr.log_context(job_index=1, stage="prepare"):
        with log_mgr.log_context(stage="embed", status=None):
            assert log_mgr.get_log_context() == {"job_index": 1, "stage": "embed"}
        assert log_mgr.get_log_context() == {"job_index": 1, "stage": "prepare"}
    assert log_mgr.get_log_context() == {}


def test_context_filter_copies_values_onto_records():
    record = _record()
    with log_mgr.log_context(job_index=3):
        assert log_mgr.LogContextFilter().filter(record)

    assert record.job_index == 3


def test_configure_logging_level_toggles_debug():
    try:
        assert log_mgr.configure_logging_level(debug_enabled=True) == logging.DEBUG
        assert log_mgr.get_logger().level == logging.DEBUG
    finally:
        log_mgr.configure_logging_level()
    assert log_mgr.get_logger().level == logging.INFO


def test_console_helpers_log_at_their_levels():
    seen = []

    class Collect(logging.Handler):
        def emit(self, record):
            seen.append((record.levelno, record.getMessage()))

    target = logging.getLogger("subembed.test.console")
    target.propagate = False
    target.setLevel(logging.DEBUG)
    handler = Collect()
    target.addHandler(handler)
    try:
        log_mgr.console_info("Embedded %d subtitles", 3, logger_obj=target)
        log_mgr.console_error("Batch failed: %s", "boom", logger_obj=target)
    finally:
        target.removeHandler(handler)

    assert seen == [(logging.INFO, "Embedded 3 subtitles"), (logging.ERROR, "Batch failed: boom")]
    assert not hasattr(log_mgr, "console_warning")
