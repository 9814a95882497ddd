from __future__ import annotations

import json
import logging

from observability.logging import ContextFilter, JsonFormatter, clear_context, set_run_context


def _record(message: str = "Fetch complete | total=%d", *args) -> logging.LogRecord:
    return logging.LogRecord("pipeline", logging.INFO, __file__, 10, message, args or (3,), None)


def test_context_filter_injects_run_id() -> None:
    set_run_context("abc12345")
    try:
        record = _record()
        ContextFilter().filter(record)
        assert record.run_id == "abc12345"
    finally:
        clear_context()

    record = _record()
    ContextFilter().filter(record)
    assert record.run_id == "-"


def test_json_formatter_output() -> None:
    record = _record()
    record.run_id = "abc12345"
    record.query = "AI policy news"

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Fetch complete | total=3"
    assert data["level"] == "INFO"
    assert data["run_id"] == "abc12345"
    assert data["query"] == "AI policy news"
    assert "source" not in data
