"""Provider timestamp helpers.

The provider reports instants in UTC. For display they are shifted by a fixed
offset and formatted from the shifted instant's UTC fields, so the output
never depends on the host's local timezone.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from usage_monitor.engine.errors import InvalidTimestampError

DEFAULT_OFFSET_HOURS = 8
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_utc(value: str) -> datetime:
    """Parse an ISO-8601 provider timestamp into an aware UTC datetime.

    Naive timestamps are taken to be UTC.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidTimestampError(f"Unparseable timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_display_time(value: str | None, offset_hours: int = DEFAULT_OFFSET_HOURS) -> str:
    """Render a UTC timestamp at a fixed offset as ``YYYY-MM-DD HH:MM:SS``.

    Empty input yields an empty string; malformed input raises
    InvalidTimestampError.
    """
    if not value:
        return ""
    shifted = parse_utc(value) + timedelta(hours=offset_hours)
    return shifted.strftime(DISPLAY_FORMAT)
