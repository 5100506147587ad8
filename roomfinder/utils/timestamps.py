"""ISO-8601 helpers shared by the parser and the location directory."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def format_timestamp(value: datetime) -> str:
    """Millisecond precision, no offset: ``2024-06-01T09:00:00.000``."""
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}"


def parse_timestamp(value: str) -> Optional[datetime]:
    cleaned = value.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        return None


def normalize_timestamp(value: str) -> str:
    """Canonical naive UTC form used for lexicographic comparison in storage.

    Offset-aware values are shifted to UTC first; naive values are taken as UTC.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"Invalid ISO-8601 timestamp: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return format_timestamp(parsed.replace(tzinfo=None))
