"""Time helpers shared by the engine and its collaborators."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    DuckDB TIMESTAMP columns are timezone-naive, so every timestamp the
    simulator produces is naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
