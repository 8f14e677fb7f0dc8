from datetime import date, datetime

import pytest

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.availability import DayAvailability
from clinic_scheduler.models.availability_exception import AvailabilityException
from clinic_scheduler.models.working_hours import default_week
from clinic_scheduler.scheduling.slots import (
    ALL_DAY_EXCEPTION_REASON,
    SOURCE_UNAVAILABLE_REASON,
    SlotResultStatus,
    blocked_windows,
    compute_slots,
    merge_windows,
    select_day,
)

MONDAY = date(2026, 3, 9)
MORNING_BEFORE = datetime(2026, 3, 1, 8, 0)


def availability(slots: list[str], target: date = MONDAY, is_available: bool = True) -> DayAvailability:
    return DayAvailability(date=target, is_available=is_available, morning=slots)


def appointment(hour: int, minute: int = 0, status: str = 'scheduled', doctor_id: int | None = 4) -> Appointment:
    return Appointment(
        id=hour * 100 + minute,
        doctor_id=doctor_id,
        appointment_time=datetime(MONDAY.year, MONDAY.month, MONDAY.day, hour, minute),
        status=status,
    )


def test_today_drops_slots_that_already_started() -> None:
    now = datetime(2026, 3, 9, 14, 15)

    result = compute_slots(
        MONDAY,
        default_week(),
        [],
        [],
        availability(['9:00 AM', '2:00 PM', '2:30 PM', '3:00 PM']),
        now,
    )

    assert result.status == SlotResultStatus.OPEN
    assert result.slots == ['2:30 PM', '3:00 PM']


def test_slot_starting_exactly_now_is_dropped() -> None:
    result = compute_slots(MONDAY, default_week(), [], [], availability(['2:15 PM', '2:30 PM']), datetime(2026, 3, 9, 14, 15))

    assert result.slots == ['2:30 PM']


def test_all_day_exception_closes_the_day() -> None:
    exception = AvailabilityException(exception_date=MONDAY, is_all_day=True)

    result = compute_slots(MONDAY, default_week(), [exception], [], availability(['9:00 AM', '10:00 AM']), MORNING_BEFORE)

    assert result.is_closed
    assert result.slots == []
    assert result.reason == ALL_DAY_EXCEPTION_REASON


def test_multi_day_exception_closes_every_covered_day() -> None:
    exception = AvailabilityException(exception_date=date(2026, 3, 6), end_date=date(2026, 3, 10))

    result = compute_slots(MONDAY, default_week(), [exception], [], availability(['9:00 AM']), MORNING_BEFORE)

    assert result.is_closed


def test_partial_exception_carves_out_a_window() -> None:
    exception = AvailabilityException(exception_date=MONDAY, is_all_day=False, start_time='12:00 PM', end_time='1:00 PM')

    result = compute_slots(
        MONDAY,
        default_week(),
        [exception],
        [],
        availability(['9:00 AM', '12:00 PM', '12:30 PM', '1:00 PM', '4:00 PM']),
        MORNING_BEFORE,
    )

    assert result.slots == ['9:00 AM', '1:00 PM', '4:00 PM']


def test_all_day_exception_wins_over_partial_exception() -> None:
    partial = AvailabilityException(exception_date=MONDAY, is_all_day=False, start_time='12:00', end_time='13:00')
    all_day = AvailabilityException(exception_date=MONDAY)

    assert blocked_windows([partial, all_day], MONDAY) is None


def test_overlapping_partial_exceptions_are_merged() -> None:
    assert merge_windows([(600, 660), (540, 610), (720, 780), (780, 800)]) == [(540, 660), (720, 800)]


def test_closed_weekday_returns_closed_with_reason() -> None:
    saturday = date(2026, 3, 14)

    result = compute_slots(saturday, default_week(), [], [], availability(['9:00 AM'], saturday), MORNING_BEFORE)

    assert result.is_closed
    assert result.reason == 'The clinic is closed on Saturdays.'


@pytest.mark.parametrize('day', [None, DayAvailability(date=MONDAY, is_available=False, morning=['9:00 AM'])])
def test_unavailable_source_returns_closed(day: DayAvailability | None) -> None:
    result = compute_slots(MONDAY, default_week(), [], [], day, MORNING_BEFORE)

    assert result.is_closed
    assert result.reason == SOURCE_UNAVAILABLE_REASON


def test_booked_slot_is_hidden_until_cancelled() -> None:
    raw = availability(['9:00 AM', '9:30 AM', '10:00 AM'])

    booked = compute_slots(MONDAY, default_week(), [], [appointment(9, 30)], raw, MORNING_BEFORE, doctor_id=4)
    cancelled = compute_slots(
        MONDAY, default_week(), [], [appointment(9, 30, status='cancelled')], raw, MORNING_BEFORE, doctor_id=4
    )

    assert booked.slots == ['9:00 AM', '10:00 AM']
    assert cancelled.slots == ['9:00 AM', '9:30 AM', '10:00 AM']


def test_other_doctors_appointments_do_not_block() -> None:
    result = compute_slots(
        MONDAY,
        default_week(),
        [],
        [appointment(9, 0, doctor_id=8)],
        availability(['9:00 AM']),
        MORNING_BEFORE,
        doctor_id=4,
    )

    assert result.slots == ['9:00 AM']


def test_unparseable_slots_are_skipped() -> None:
    result = compute_slots(MONDAY, default_week(), [], [], availability(['9:00 AM', 'lunch', '10:00']), MORNING_BEFORE)

    assert result.slots == ['9:00 AM', '10:00']


def test_select_day_finds_matching_date() -> None:
    days = [availability(['9:00 AM'], date(2026, 3, 8)), availability(['10:00 AM'])]

    assert select_day(days, MONDAY).morning == ['10:00 AM']
    assert select_day(days, date(2026, 3, 20)) is None
