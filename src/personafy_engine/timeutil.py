# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch (exact, floor)."""
    return (ensure_aware(moment) - _EPOCH) // _ONE_MS


def to_iso(moment: datetime) -> str:
    """Format a datetime as a millisecond-precision UTC ISO-8601 string with ``Z``."""
    utc = ensure_aware(moment).astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str | None) -> datetime | None:
    """
    Strictly parse an ISO-8601 instant.

    Returns None for empty or unparseable input instead of raising, so
    callers can fail closed. Naive values are read as UTC.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ensure_aware(parsed)
