from datetime import datetime, timezone

utc_now = lambda: datetime.now(timezone.utc)  # noqa: E731


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes coming from collaborators."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
