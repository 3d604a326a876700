# tests/utils/test_date_utils.py

from datetime import date, datetime, timedelta, timezone

import pytest

from costcompass.utils.date_utils import (
    ensure_utc,
    parse_calculation_date,
    parse_duration_seconds,
    parse_iso_date,
    to_iso_z,
)


def test_to_iso_z_always_renders_microseconds():
    assert to_iso_z(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)) == "2024-05-01T12:00:00.000000Z"


def test_iso_strings_sort_chronologically():
    early = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    late = early + timedelta(microseconds=1)

    assert to_iso_z(early) < to_iso_z(late)


def test_parse_iso_date_accepts_z_suffix():
    assert parse_iso_date("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert parse_iso_date("not a date") is None
    assert parse_iso_date(None) is None


def test_ensure_utc_converts_offsets():
    paris = timezone(timedelta(hours=2))

    assert ensure_utc(datetime(2024, 5, 1, 14, 0, tzinfo=paris)) == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert ensure_utc(datetime(2024, 5, 1, 12, 0)).tzinfo == timezone.utc


def test_parse_calculation_date():
    assert parse_calculation_date("2024-05-01") == date(2024, 5, 1)
    assert parse_calculation_date(date(2024, 5, 1)) == date(2024, 5, 1)
    late_evening_west = datetime(2024, 4, 30, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert parse_calculation_date(late_evening_west) == date(2024, 5, 1)

    with pytest.raises(ValueError):
        parse_calculation_date("01/05/2024")


@pytest.mark.parametrize("value,seconds", [("30s", 30), ("5m", 300), ("2h", 7200), (" 1M ", 60)])
def test_parse_duration_seconds(value, seconds):
    assert parse_duration_seconds(value) == seconds


@pytest.mark.parametrize("value", ["", "5", "5d", "m5", None])
def test_parse_duration_seconds_rejects_bad_values(value):
    with pytest.raises(ValueError):
        parse_duration_seconds(value)
