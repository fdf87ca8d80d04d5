"""
KnowledgeOS clock module

Time rules for the knowledge store:
1. Timestamps are always timezone-aware UTC
2. Never call datetime.now() or datetime.utcnow() directly
3. Serialized form is ISO 8601 with a Z suffix

Documents, manifests and rule files all go through iso_z() on write and
parse_time() on read so that a round trip reproduces the exact instant.
"""

from datetime import datetime, timezone
from typing import Optional, Union



def utc_now() -> datetime:
    """
    Current UTC time (timezone-aware)

    Example:
        >>> now = utc_now()
        >>> now.tzinfo  # timezone.utc
    """
    return datetime.now(timezone.utc)


def from_epoch_s(s: float) -> datetime:
    """
    Convert epoch seconds (as printed by `git log %at`) to aware UTC datetime

    Example:
        >>> from_epoch_s(1769860800).year
        2026
    """
    return datetime.fromtimestamp(s, tz=timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Make a datetime timezone-aware UTC

    Behavior:
        - None → None
        - naive datetime → UTC attached (declared as UTC, not converted)
        - aware non-UTC → converted to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime as ISO 8601 UTC with Z suffix

    Output format: YYYY-MM-DDTHH:MM:SS.ffffffZ (microseconds always present)

    Example:
        >>> iso_z(datetime(2026, 1, 31, 12, 34, 56, 789012, tzinfo=timezone.utc))
        '2026-01-31T12:34:56.789012Z'
    """
    if dt is None:
        return None

    return ensure_utc(dt).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def parse_time(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime

    Accepts:
    - "2026-01-31T12:34:56.789012Z" (what iso_z writes)
    - "2026-01-31T12:34:56+00:00" (ISO with offset)
    - "2026-01-31T12:34:56" / "2026-01-31 12:34:56" (treated as UTC)
    - datetime objects (YAML loaders may already have converted the value)
    - None → None

    Raises:
        ValueError: if a string cannot be parsed
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return ensure_utc(datetime.fromisoformat(text))
