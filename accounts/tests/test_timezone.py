"""Tests for display timezone conversion."""

from datetime import datetime, timezone

from accounts.app.core.timezone import as_utc, to_display


def test_winter_offset():
    assert to_display(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)) == "2024-01-01T07:00:00-05:00"


def test_summer_offset():
    assert to_display(datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)) == "2024-07-01T08:00:00-04:00"


def test_naive_values_are_utc():
    naive = datetime(2024, 1, 1, 12, 0, 30, 123456)
    assert to_display(naive) == "2024-01-01T07:00:30-05:00"
    assert as_utc(naive).tzinfo == timezone.utc


def test_none_passthrough():
    assert to_display(None) is None
