"""Tests for log filters."""

import logging

from core.logging.context import set_log_context
from core.logging.filters import ComponentFilter, LogContextFilter


def _record(**extras):
    record = logging.LogRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestLogContextFilter:

    def test_copies_context_onto_record(self):
        set_log_context(request_id="r-1", gadget_uri="https://g.example/g.xml")
        record = _record()

        assert LogContextFilter().filter(record)
        assert record.request_id == "r-1"
        assert record.gadget_uri == "https://g.example/g.xml"
        assert record.service_name == ""

    def test_keeps_explicit_extra(self):
        """Should not overwrite a field passed in extra."""
        set_log_context(service_name="photos")
        record = _record(service_name="calendar")

        LogContextFilter().filter(record)

        assert record.service_name == "calendar"


class TestComponentFilter:

    def test_passes_matching_component(self):
        set_log_context(component="callback")
        assert ComponentFilter("callback").filter(_record())

    def test_blocks_other_components(self):
        set_log_context(component="fetch")
        assert not ComponentFilter("callback").filter(_record())
