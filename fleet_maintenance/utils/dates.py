from datetime import datetime, timezone


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are treated as UTC (SQLite drops the offset on storage)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None
