"""Utility helpers for the popsync service."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any


QUALITY_RE = re.compile(r"\b(480p|576p|720p|1080p|2160p)\b", re.IGNORECASE)
SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 value into a naive UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_epoch(value: Any) -> int | None:
    """Return whole seconds since the epoch for an ISO-8601 value."""

    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return int(parsed.replace(tzinfo=timezone.utc).timestamp())


def parse_quality(title: str | None) -> str | None:
    """Extract the resolution label (``720p`` etc.) from a release name."""

    if not title:
        return None
    match = QUALITY_RE.search(title)
    if not match:
        return None
    return match.group(1).lower()


def human_size(size: int | None) -> str | None:
    """Render a byte count the way torrent indexes display it."""

    if size is None or size < 0:
        return None
    value = float(size)
    for unit in SIZE_UNITS:
        if value < 1024 or unit == SIZE_UNITS[-1]:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.2f} {unit}"
        value /= 1024
    return None  # pragma: no cover - loop always returns


def coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
