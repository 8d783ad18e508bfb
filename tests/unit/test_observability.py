"""Unit tests for structured logging utilities in ``observability``.

Validates the null handler, trace binding, event construction and the events
the public entry points emit.
"""

from __future__ import annotations

import logging

import pytest

from lib_nested_query import DecodeOptions, LimitExceeded, bind_trace_id, decode, encode, get_logger
from lib_nested_query.observability import TRACE_ID, log_info, make_event


def test_null_handler_present() -> None:
    """Package logger should always include a NullHandler to avoid surprises."""

    logger = get_logger()
    assert any(isinstance(handler, logging.NullHandler) for handler in logger.handlers)


def test_trace_id_in_log(caplog: pytest.LogCaptureFixture) -> None:
    """Structured logs should include the bound trace identifier and contextual fields."""

    caplog.set_level(logging.INFO, logger="lib_nested_query")
    bind_trace_id("trace-123")
    try:
        log_info("decode-complete", operation="decode", charset="utf-8")
    finally:
        bind_trace_id(None)
    record = caplog.records[-1]
    assert getattr(record, "context") == {"trace_id": "trace-123", "operation": "decode", "charset": "utf-8"}


def test_bind_trace_id_clears_context() -> None:
    bind_trace_id("trace-temp")
    bind_trace_id(None)
    assert TRACE_ID.get() is None


def test_make_event_merges_optional_payload() -> None:
    event = make_event("encode", "iso-8859-1", {"length": 3})
    assert event == {"operation": "encode", "charset": "iso-8859-1", "length": 3}


def test_make_event_without_payload() -> None:
    assert make_event("decode", None) == {"operation": "decode", "charset": None}


def test_decode_emits_completion_event(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_nested_query")
    decode("a=b&c=d")
    record = next(record for record in caplog.records if record.getMessage() == "decode-complete")
    context = getattr(record, "context")
    assert context["operation"] == "decode"
    assert context["keys"] == 2
    assert context["input_size"] == 7


def test_encode_emits_completion_event(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_nested_query")
    encode({"a": "b"})
    record = next(record for record in caplog.records if record.getMessage() == "encode-complete")
    assert getattr(record, "context")["length"] == 3


def test_failures_are_logged_before_propagating(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_nested_query")
    with pytest.raises(LimitExceeded):
        decode("a=1&b=2", DecodeOptions(parameter_limit=1, throw_on_limit_exceeded=True))
    record = caplog.records[-1]
    assert record.getMessage() == "decode-failed"
    assert getattr(record, "context")["kind"] == "LimitExceeded"


def test_decode_reports_input_that_yields_nothing(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="lib_nested_query")
    assert decode("=x&&") == {}
    record = next(record for record in caplog.records if record.getMessage() == "decode-empty")
    assert record.levelno == logging.INFO
    assert getattr(record, "context")["input_size"] == 4


def test_decode_with_results_stays_below_info(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="lib_nested_query")
    decode("a=b")
    assert not caplog.records
