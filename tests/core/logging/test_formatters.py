"""Tests for JSON and console log formatters."""

import json
import logging
import sys

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter


def _make_record(msg="test message", level=logging.INFO, exc_info=None, **extras):
    record = logging.LogRecord(
        name="gadgets.oauth2.request",
        level=level,
        pathname="request.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_required_fields(self):
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["level"] == "INFO"
        assert output["logger"] == "gadgets.oauth2.request"
        assert output["message"] == "test message"
        assert output["ts"].endswith("Z")
        assert "file" not in output

    def test_context_fields(self):
        set_log_context(request_id="r-1", gadget_uri="https://g.example/g.xml", service_name="photos")
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["request_id"] == "r-1"
        assert output["gadget_uri"] == "https://g.example/g.xml"
        assert output["service_name"] == "photos"
        assert "component" not in output

    def test_extra_fields_typed(self):
        """Should coerce numeric fields and null out values that do not convert."""
        record = _make_record(http_status="401", attempt="x", grant_type="code", duration_ms=3)
        output = json.loads(JSONFormatter().format(record))

        assert output["http_status"] == 401
        assert output["duration_ms"] == 3.0
        assert output["grant_type"] == "code"
        assert output["attempt"] is None

    def test_url_fields_sanitized(self):
        """Should redact credentials in URL fields."""
        record = _make_record(
            http_url="https://api.example/photos?access_token=secret&album=1",
            authorization_url="https://provider.example/authorize?state=blob&client_id=cid",
        )
        output = json.loads(JSONFormatter().format(record))

        assert "secret" not in output["http_url"]
        assert "album=1" in output["http_url"]
        assert "blob" not in output["authorization_url"]
        assert "client_id=cid" in output["authorization_url"]

    def test_source_location_for_errors(self):
        output = json.loads(JSONFormatter().format(_make_record(level=logging.ERROR)))
        assert output["file"] == "request.py:42"

    def test_exception(self):
        try:
            raise ValueError("bad token")
        except ValueError:
            record = _make_record(level=logging.ERROR, exc_info=sys.exc_info())

        output = json.loads(JSONFormatter().format(record))

        assert output["exception"]["type"] == "ValueError"
        assert output["exception"]["message"] == "bad token"
        assert "Traceback" in output["exception"]["stacktrace"]

    def test_non_serializable_extra(self):
        """Should fall back to the JSON serializer for unusual values."""
        record = _make_record(path=b"secret-bytes")
        output = json.loads(JSONFormatter().format(record))
        assert output["path"] == "<12 bytes>"


class TestConsoleFormatter:

    def test_plain_format(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = False

        line = formatter.format(_make_record())

        assert line.endswith(" - INFO - test message")

    def test_context_tags(self):
        set_log_context(request_id="r-20260101-abcdef", component="callback", service_name="photos")
        formatter = ConsoleFormatter()
        formatter._use_colors = False

        line = formatter.format(_make_record())

        assert "[callback] - [photos]" in line
        assert "[r-202601] test message" in line

    def test_colors(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = True

        line = formatter.format(_make_record(level=logging.WARNING))

        assert "\033[33mWARNING\033[0m" in line
