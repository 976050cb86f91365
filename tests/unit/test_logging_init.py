from __future__ import annotations

import logging

from billing_import.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("billing_import", level, __file__, 1, msg, None, None)


def test_labeled_formatter_labels():
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.INFO, "hello")) == "INFO hello"
    assert fmt.format(_record(logging.WARNING, "careful")) == "WARN careful"
    assert fmt.format(_record(logging.ERROR, "boom")) == "ERROR boom"
    assert fmt.format(_record(SUMMARY_LEVEL, "rows=1")) == "SUMMARY rows=1"


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert first.name == LOGGER_NAME
    assert len(first.handlers) == 1
    assert first.propagate is False


def test_debug_flag_lowers_level():
    logger = setup_logging()
    assert logger.level == logging.INFO
    setup_logging(debug=True)
    assert logger.level == logging.DEBUG
    assert logger.handlers[0].level == logging.DEBUG


def test_module_loggers_write_through_app_handler(capsys):
    setup_logging()
    logging.getLogger("billing_import.services.pipeline").info("from module")
    log_summary("preview file=x rows=0")
    out = capsys.readouterr().out
    assert "INFO from module" in out
    assert "SUMMARY preview file=x rows=0" in out


def test_get_logger_sets_up_on_demand():
    assert get_logger().name == LOGGER_NAME
