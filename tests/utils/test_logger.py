import json

import pytest

from doccontext.config import config
from doccontext.utils.logger import logger, logger_instance
from doccontext.utils.logging_context import get_current_trace_id, trace_context


@pytest.fixture
def json_log_file(tmp_path):
    log_file = tmp_path / "test_log.jsonl"
    config.set("logging.log_file", str(log_file))
    config.set("logging.format", "json")
    logger_instance.shutdown()
    logger_instance._setup_logging()
    yield log_file
    config.set("logging.log_file", None)
    logger_instance.shutdown()
    logger_instance._setup_logging()


def _read(log_file):
    for handler in logger_instance._handlers:
        handler.flush()
    with open(log_file, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def test_json_lines_carry_trace_id(json_log_file):
    with trace_context("abc123") as trace_id:
        logger.info("selected context", tier="keyword")
    assert trace_id == "abc123"

    entries = _read(json_log_file)
    entry = [e for e in entries if e.get("message") == "selected context"][-1]
    assert entry["trace_id"] == "abc123"
    assert entry["tier"] == "keyword"
    assert entry["level"] == "INFO"


def test_lines_outside_trace_have_empty_trace_id(json_log_file):
    logger.warning("no trace here")
    entry = [e for e in _read(json_log_file) if e.get("message") == "no trace here"][-1]
    assert entry["trace_id"] == ""


def test_trace_context_nesting_reuses_outer_id():
    assert get_current_trace_id() is None
    with trace_context() as outer:
        with trace_context() as inner:
            assert inner == outer
        assert get_current_trace_id() == outer
    assert get_current_trace_id() is None
