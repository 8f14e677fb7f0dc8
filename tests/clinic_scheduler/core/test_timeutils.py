from datetime import date, datetime, time, timezone

import pytest

from clinic_scheduler.core import config
from clinic_scheduler.core.timeutils import (
    date_to_display,
    format_12_hour,
    is_slot_in_past,
    parse_slot_minutes,
    parse_time,
    to_24_hour,
    to_clinic_wall_clock,
)


@pytest.mark.parametrize(
    ('slot', 'expected'),
    [
        ('12:00 AM', '00:00'),
        ('12:30 AM', '00:30'),
        ('9:00 AM', '09:00'),
        ('11:59 AM', '11:59'),
        ('12:00 PM', '12:00'),
        ('12:45 PM', '12:45'),
        ('1:00 PM', '13:00'),
        ('11:30 pm', '23:30'),
    ],
)
def test_to_24_hour_handles_midnight_and_noon(slot: str, expected: str) -> None:
    assert to_24_hour(slot) == expected


@pytest.mark.parametrize('value', ['00:00', '09:15', '12:00', '12:30', '13:45', '23:59'])
def test_24_hour_times_survive_display_round_trip(value: str) -> None:
    assert to_24_hour(format_12_hour(parse_time(value))) == value


def test_parse_slot_minutes_accepts_api_time_strings() -> None:
    assert parse_slot_minutes('09:00:00.000Z') == 540
    assert parse_slot_minutes('17:30:00') == 1050
    assert parse_slot_minutes('2:30 PM') == 870


@pytest.mark.parametrize('value', ['', 'noon', '13:00 PM', '0:00 AM', '24:00', '9:60 AM'])
def test_parse_slot_minutes_rejects_malformed_times(value: str) -> None:
    with pytest.raises(ValueError):
        parse_slot_minutes(value)


def test_format_12_hour_has_no_leading_zero() -> None:
    assert format_12_hour(time(9, 5)) == '9:05 AM'
    assert format_12_hour(time(0, 0)) == '12:00 AM'
    assert format_12_hour(time(12, 0)) == '12:00 PM'


def test_display_dates_use_month_day_year() -> None:
    assert date_to_display(date(2026, 3, 7)) == '03-07-2026'


def test_is_slot_in_past_compares_against_clinic_now() -> None:
    now = datetime(2026, 3, 10, 14, 30)

    assert is_slot_in_past(date(2026, 3, 10), '2:30 PM', now) is True
    assert is_slot_in_past(date(2026, 3, 10), '2:45 PM', now) is False
    assert is_slot_in_past(date(2026, 3, 9), '11:00 PM', now) is True
    assert is_slot_in_past(date(2026, 3, 11), '8:00 AM', now) is False


def test_to_clinic_wall_clock_converts_aware_datetimes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'CLINIC_TIMEZONE', 'America/New_York')

    aware = datetime(2026, 7, 1, 18, 0, tzinfo=timezone.utc)

    assert to_clinic_wall_clock(aware) == datetime(2026, 7, 1, 14, 0)
    assert to_clinic_wall_clock(datetime(2026, 7, 1, 9, 0)) == datetime(2026, 7, 1, 9, 0)
