from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

from core.utils.json_serializers import json_serializer


class GrantType(Enum):
    CODE = "code"


class Binding:
    def __init__(self, service_name):
        self.service_name = service_name


class TestJsonSerializer:

    def test_datetime(self):
        assert json_serializer(datetime(2026, 6, 15, 10, 30)) == "2026-06-15T10:30:00"

    def test_date(self):
        assert json_serializer(date(2026, 12, 25)) == "2026-12-25"

    def test_decimal(self):
        assert json_serializer(Decimal("1.5")) == 1.5

    def test_path(self):
        assert json_serializer(Path("/etc/gadgets/oauth2.json")) == "/etc/gadgets/oauth2.json"

    def test_bytes_are_not_written(self):
        """Should replace raw bytes (token secrets) with a length marker."""
        assert json_serializer(b"secret") == "<6 bytes>"
        assert json_serializer(bytearray(3)) == "<3 bytes>"

    def test_enum(self):
        assert json_serializer(GrantType.CODE) == "code"

    def test_object_dict(self):
        assert json_serializer(Binding("photos")) == {"service_name": "photos"}

    def test_fallback_to_str(self):
        assert json_serializer(1 + 2j) == "(1+2j)"
