"""Shared JSON serialization utilities for log output."""

from datetime import date, datetime
from pathlib import Path
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    JSON serializer for values json.dumps cannot handle natively.

    - datetime/date -> ISO 8601 string
    - Path -> string
    - bytes -> decoded text (undecodable bytes replaced)
    - Enums -> value
    - Everything else -> string (fallback)

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if hasattr(obj, "value"):
        return obj.value
    return str(obj)


__all__ = ["json_serializer"]
