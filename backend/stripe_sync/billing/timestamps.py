"""Stripe epoch timestamp conversion.

Handlers persist ``epoch_to_datetime`` values into the timezone-aware
columns. ``normalize_timestamp`` is the textual form of the same instant,
for code that needs the ISO-8601 representation rather than a column value.
"""

from datetime import datetime, timezone


def epoch_to_datetime(ts: int | None) -> datetime | None:
    """Convert a Stripe Unix timestamp to an aware UTC datetime."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def normalize_timestamp(ts: int | None) -> str | None:
    """Convert a Stripe Unix timestamp to ISO-8601 UTC with millisecond precision.

    ``None`` means the field is absent (e.g. no trial) and stays ``None``:

        >>> normalize_timestamp(0)
        '1970-01-01T00:00:00.000Z'
        >>> normalize_timestamp(None) is None
        True
    """
    dt = epoch_to_datetime(ts)
    if dt is None:
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
