from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp with microseconds, stored identically on every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
