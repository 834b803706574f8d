from datetime import datetime, timezone


def normalize_ts(ts: datetime) -> datetime:
    """
    Ensure datetime is timezone-aware.
    Defaults to UTC if naive (SQLite hands back naive values).
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts
