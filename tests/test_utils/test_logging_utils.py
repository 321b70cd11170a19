"""Tests for logging setup and formatters."""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from mastermeter.utils.logging import (
    ColoredFormatter,
    JSONFormatter,
    create_logger_with_context,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler):
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def _record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("worker", level, __file__, 42, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data['level'] == 'INFO'
        assert data['logger'] == 'worker'
        assert data['message'] == 'hello'
        assert data['line'] == 42
        assert 'context' not in data

    def test_context(self):
        data = json.loads(JSONFormatter().format(_record(context={'item_id': 'a.wav-1'})))
        assert data['context'] == {'item_id': 'a.wav-1'}


class TestColoredFormatter:
    def test_colors_level_without_mutating_record(self):
        record = _record(level=logging.WARNING)
        text = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[33m" in text
        assert record.levelname == 'WARNING'


class TestSetupLogging:
    def test_text_console(self, restore_root_logger):
        setup_logging(level="DEBUG", log_format="text", colored=False)
        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_json_file(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "mastermeter.log"
        setup_logging(level="INFO", log_file=str(log_file), console_enabled=False)
        root = restore_root_logger
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], RotatingFileHandler)

        logging.getLogger("batch_processor").info("queued")
        root.handlers[0].flush()
        line = log_file.read_text(encoding='utf-8').strip()
        assert json.loads(line)['message'] == 'queued'


class TestContextLogger:
    def test_context_in_message_and_record(self, caplog):
        logger = create_logger_with_context("batch_processor", {"item_id": "mix.wav-1"})
        with caplog.at_level(logging.INFO, logger="batch_processor"):
            logger.info("Decoding")
        record = caplog.records[-1]
        assert record.getMessage() == "Decoding [item_id=mix.wav-1]"
        assert record.context == {"item_id": "mix.wav-1"}
