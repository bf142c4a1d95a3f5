from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def date_window(center: date, tolerance_days: int) -> tuple[date, date]:
    """Inclusive date range of +/- tolerance_days around center."""
    delta = timedelta(days=tolerance_days)
    return center - delta, center + delta


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """
    Human-readable age of a past timestamp, e.g. "5 minutes ago".
    Anything older than a week is shown as a date.
    """
    elapsed = (now or utc_now()) - ensure_aware(dt)
    seconds = max(0, int(elapsed.total_seconds()))

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{_plural(seconds // 60, 'minute')} ago"
    if seconds < 86400:
        return f"{_plural(seconds // 3600, 'hour')} ago"
    if elapsed < timedelta(days=7):
        return f"{_plural(elapsed.days, 'day')} ago"
    return ensure_aware(dt).strftime("%b %d, %Y at %H:%M")
