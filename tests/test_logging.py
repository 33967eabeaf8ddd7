import io
import json
import logging
import sys

import pytest
from loguru import logger
from opentelemetry import trace

from loyalty_api.core.logging import configure_logging


@pytest.fixture
def log_stream():
    stream = io.StringIO()
    configure_logging(
        service_name="loyalty-api",
        environment="development",
        version="test",
        level="INFO",
        stream=stream,
    )
    yield stream
    logger.remove()
    logger.add(sys.stderr)
    logging.basicConfig(force=True)


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_loguru_events_are_json_with_bound_fields(log_stream) -> None:
    logger.info("Created loyalty redemption", user_id="u-1", points=100)
    logger.debug("Below the configured level")

    [entry] = _lines(log_stream)
    assert entry["event"] == "Created loyalty redemption"
    assert entry["level"] == "info"
    assert entry["service"] == "loyalty-api"
    assert entry["environment"] == "development"
    assert entry["version"] == "test"
    assert entry["user_id"] == "u-1"
    assert entry["points"] == 100
    assert "trace_id" not in entry


def test_stdlib_records_are_bridged(log_stream) -> None:
    logging.getLogger("loyalty.bridge").warning("lock wait %s", "exceeded", extra={"user_id": "u-2"})

    [entry] = _lines(log_stream)
    assert entry["event"] == "lock wait exceeded"
    assert entry["level"] == "warning"
    assert entry["logger"] == "loyalty.bridge"
    assert entry["user_id"] == "u-2"


def test_exceptions_are_summarised(log_stream) -> None:
    try:
        raise RuntimeError("database went away")
    except RuntimeError:
        logger.exception("Redemption failed")

    [entry] = _lines(log_stream)
    assert entry["level"] == "error"
    assert entry["error"] == {"type": "RuntimeError", "detail": "database went away"}


def test_active_span_ids_are_attached(log_stream) -> None:
    context = trace.SpanContext(
        trace_id=0x1234,
        span_id=0x5678,
        is_remote=False,
        trace_flags=trace.TraceFlags(trace.TraceFlags.SAMPLED),
    )

    with trace.use_span(trace.NonRecordingSpan(context)):
        logger.info("Traced event")

    [entry] = _lines(log_stream)
    assert entry["trace_id"] == f"{0x1234:032x}"
    assert entry["span_id"] == f"{0x5678:016x}"
