"""
KnowledgeOS Time Module

Usage:
    from knowledgeos.core.time import utc_now, iso_z, parse_time

    now = utc_now()          # aware UTC datetime
    stamp = iso_z(now)       # '2026-01-31T12:34:56.789012Z'
    again = parse_time(stamp)
"""

from .clock import (
    utc_now,
    from_epoch_s,
    ensure_utc,
    iso_z,
    parse_time,
)

__all__ = [
    'utc_now',
    'from_epoch_s',
    'ensure_utc',
    'iso_z',
    'parse_time',
]
