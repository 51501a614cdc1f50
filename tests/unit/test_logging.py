# ============================================================================
# FILE: tests/unit/test_logging.py
# ============================================================================
"""
Unit tests for logging utilities
"""

import json
import logging

import pytest

from medical_interpreter.utils.logging import JsonFormatter, LogContext, log_performance


def make_record(logger_name="test", message="hello"):
    return logging.getLogger(logger_name).makeRecord(
        logger_name, logging.INFO, __file__, 1, message, None, None
    )


def test_json_formatter():
    """Test JSON log lines"""
    data = json.loads(JsonFormatter().format(make_record(message="provider ok")))

    assert data["level"] == "INFO"
    assert data["message"] == "provider ok"
    assert "extra" not in data


def test_log_context_fields():
    """Test that LogContext stamps request fields on records"""
    logger = logging.getLogger("ctx")

    with LogContext(logger, request_id="abc123", file_name="cbc.pdf"):
        record = logging.getLogRecordFactory()("ctx", logging.INFO, __file__, 1, "msg", None, None)
        data = json.loads(JsonFormatter().format(record))

    assert data["extra"] == {"request_id": "abc123", "file_name": "cbc.pdf"}
    after = logging.getLogRecordFactory()("ctx", logging.INFO, __file__, 1, "msg", None, None)
    assert not hasattr(after, "request_id")


def test_log_performance_sync(caplog):
    """Test timing of a plain function"""
    logger = logging.getLogger("perf")

    @log_performance(logger, "adding")
    def add(a, b):
        return a + b

    with caplog.at_level(logging.INFO, logger="perf"):
        assert add(1, 2) == 3
    assert "adding completed" in caplog.text


@pytest.mark.asyncio
async def test_log_performance_async_reraises(caplog):
    """Test that async failures are logged and re-raised"""
    logger = logging.getLogger("perf")

    @log_performance(logger, "interpretation")
    async def explode():
        raise RuntimeError("boom")

    with caplog.at_level(logging.INFO, logger="perf"):
        with pytest.raises(RuntimeError):
            await explode()
    assert "interpretation failed" in caplog.text
