from datetime import date, datetime, timedelta, timezone

from financeflow.utils.datetime import date_window, ensure_aware, format_relative_time

NOW = datetime(2026, 1, 24, 12, 0, tzinfo=timezone.utc)


def test_date_window_is_inclusive():
    assert date_window(date(2025, 1, 10), 2) == (date(2025, 1, 8), date(2025, 1, 12))


def test_naive_datetimes_are_utc():
    assert ensure_aware(datetime(2025, 1, 10, 9, 30)).tzinfo == timezone.utc


def test_relative_time():
    assert format_relative_time(NOW - timedelta(seconds=20), now=NOW) == "just now"
    assert format_relative_time(NOW - timedelta(minutes=1), now=NOW) == "1 minute ago"
    assert format_relative_time(NOW - timedelta(hours=5), now=NOW) == "5 hours ago"
    assert format_relative_time(NOW - timedelta(days=3), now=NOW) == "3 days ago"
    assert format_relative_time(NOW - timedelta(days=30), now=NOW) == "Dec 25, 2025 at 12:00"


def test_naive_timestamp_from_sqlite():
    naive = (NOW - timedelta(minutes=10)).replace(tzinfo=None)
    assert format_relative_time(naive, now=NOW) == "10 minutes ago"
