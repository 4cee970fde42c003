"""
Tests for timestamp utilities.
"""

from datetime import date, datetime, timedelta, timezone

from azure_metrics_exporter.domain.utils.timestamps import (
    parse_version_date,
    query_window,
    to_rfc3339,
)


def test_parse_version_date_plain():
    """Test parsing a plain dated API version."""
    assert parse_version_date("2019-05-10") == date(2019, 5, 10)


def test_parse_version_date_with_suffix():
    """Test parsing a preview API version keeps only the leading date."""
    assert parse_version_date("2018-01-01-preview") == date(2018, 1, 1)


def test_parse_version_date_invalid_returns_none(caplog):
    """Test that a version without a leading date is rejected with a warning."""
    with caplog.at_level("WARNING"):
        assert parse_version_date("latest") is None
    assert any("timestamps.version_date_missing" == r.getMessage() for r in caplog.records)


def test_parse_version_date_impossible_date_returns_none():
    """Test that a well-formed but impossible date is rejected."""
    assert parse_version_date("2018-02-30") is None


def test_to_rfc3339_drops_microseconds():
    """Test RFC 3339 formatting in UTC with second precision."""
    dt = datetime(2025, 10, 15, 12, 0, 0, 999, tzinfo=timezone.utc)
    assert to_rfc3339(dt) == "2025-10-15T12:00:00Z"


def test_to_rfc3339_converts_offsets_to_utc():
    """Test that aware datetimes in other zones are converted."""
    dt = datetime(2025, 10, 15, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_rfc3339(dt) == "2025-10-15T12:00:00Z"


def test_to_rfc3339_naive_is_treated_as_utc():
    """Test that naive datetimes are assumed to be UTC."""
    assert to_rfc3339(datetime(2025, 10, 15, 12, 0, 0)) == "2025-10-15T12:00:00Z"


def test_query_window_ends_at_now():
    """Test the lookback window ends at the given time."""
    now = datetime(2025, 10, 15, 12, 0, 0, tzinfo=timezone.utc)
    assert query_window(now, timedelta(minutes=5)) == (
        "2025-10-15T11:55:00Z",
        "2025-10-15T12:00:00Z",
    )
