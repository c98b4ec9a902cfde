from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time for timestamp columns."""
    return datetime.now(timezone.utc)
