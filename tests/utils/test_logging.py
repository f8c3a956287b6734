"""Tests for logging utilities."""

import logging
from logging.handlers import RotatingFileHandler

import colorama
import pytest

import metachan.utils.logging as logging_module
import metachan.utils.terminal as terminal_module
from metachan.utils.logging import CleanFormatter, ColorFormatter, Logger


def _record(msg) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_color_formatter_applies_color_codes():
    """ColorFormatter colors marked sections and restores the record."""
    formatter = ColorFormatter("%(levelname)s:%(message)s")
    original_message = "$$'value'$$ $${key: value}$$ message"
    record = _record(original_message)

    formatted = formatter.format(record)

    assert colorama.Fore.GREEN in formatted
    assert colorama.Fore.LIGHTBLUE_EX in formatted
    assert colorama.Style.DIM in formatted
    assert record.msg == original_message


def test_clean_formatter_removes_markers():
    """CleanFormatter removes the highlight markers from the message."""
    formatter = CleanFormatter("%(message)s")
    record = _record("wrapped $$'value'$$ and $${key: 1}$$")

    formatted = formatter.format(record)

    assert formatted == "wrapped 'value' and {key: 1}"


def test_clean_formatter_handles_non_string_messages():
    """CleanFormatter delegates to the base formatter for non-str messages."""
    formatter = CleanFormatter("%(message)s")

    assert formatter.format(_record({"value": 1})) == "{'value': 1}"


def test_logger_prefixes_class_name():
    """Messages logged from a method are prefixed with the class name."""
    logger = Logger("test")
    logger.setLevel(logging.DEBUG)
    captured: list[str] = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            captured.append(record.getMessage())

    logger.addHandler(ListHandler())

    class MappingSync:
        def __init__(self, bound_logger: Logger):
            self.log = bound_logger

        def run(self):
            self.log.info("synced")

    MappingSync(logger).run()

    assert captured == ["MappingSync: synced"]


def test_logger_success_level_records_message():
    """Logger.success logs at the custom SUCCESS level."""
    logger = Logger("test-success")
    logger.setLevel(Logger.SUCCESS)
    records: list[logging.LogRecord] = []

    class CaptureHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    logger.addHandler(CaptureHandler())
    logger.info("filtered out")
    logger.success("operation complete")

    assert len(records) == 1
    assert records[0].levelname == "SUCCESS"
    assert records[0].getMessage() == "operation complete"


def test_logger_setup_creates_file_and_console_handlers(
    tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Setup honors the SUCCESS level and configures both handlers."""
    logger = Logger("setup-test")

    monkeypatch.setattr(terminal_module, "supports_color", lambda: True)
    monkeypatch.setattr(logging_module.sys, "platform", "linux")
    monkeypatch.setattr(logging_module.colorama, "init", lambda: None)

    logger.setup("SUCCESS", log_dir=str(tmp_path))

    assert logger.level == Logger.SUCCESS
    assert (tmp_path / "setup-test.SUCCESS.log").exists()
    assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    assert any(
        isinstance(h.formatter, ColorFormatter)
        for h in logger.handlers
        if not isinstance(h, RotatingFileHandler)
    )

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


def test_logger_setup_handles_color_detection_errors(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Setup falls back to plain output when color detection fails."""
    logger = Logger("color-test")
    logger.addHandler(logging.NullHandler())

    def _raise_os_error():
        raise OSError("boom")

    monkeypatch.setattr(terminal_module, "supports_color", _raise_os_error)

    logger.setup("INFO")

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, CleanFormatter)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
