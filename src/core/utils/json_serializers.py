"""Shared JSON serialization utilities for type-safe JSON encoding."""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, Decimal):
        return True, float(obj)
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, (bytes, bytearray)):
        return True, f"<{len(obj)} bytes>"
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer for log records and traces.

    - datetime/date -> ISO 8601 string
    - Decimal -> float
    - Path -> string
    - bytes -> length marker (raw secrets are never written)
    - Enums -> value
    - Everything else -> string (fallback)
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "value"):
        return obj.value
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    return str(obj)


__all__ = ["json_serializer"]
