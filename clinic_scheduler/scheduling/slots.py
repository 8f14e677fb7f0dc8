"""Bookable slot computation for a single doctor-day.

The availability source proposes raw slots; this module removes everything
the clinic's own rules say cannot be booked: closed weekdays, off-days and
holidays, partial-day exceptions, slots already taken, and (for today) slots
that have already started.
"""

import logging
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel

from clinic_scheduler.core.timeutils import minutes_of, parse_slot_minutes
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.availability import DayAvailability
from clinic_scheduler.models.availability_exception import AvailabilityException, exceptions_covering
from clinic_scheduler.models.working_hours import WorkingHours, hours_for

logger = logging.getLogger(__name__)

CLOSED_WEEKDAY_REASON = 'The clinic is closed on {day}s.'
ALL_DAY_EXCEPTION_REASON = 'The doctor is unavailable on this date.'
SOURCE_UNAVAILABLE_REASON = 'No available time slots for this date.'


class SlotResultStatus(str, Enum):
    OPEN = 'open'
    CLOSED = 'closed'


class SlotResult(BaseModel):
    date: date
    status: SlotResultStatus
    slots: list[str] = []
    reason: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == SlotResultStatus.CLOSED

    @classmethod
    def closed(cls, target_date: date, reason: str) -> 'SlotResult':
        return cls(date=target_date, status=SlotResultStatus.CLOSED, reason=reason)


def blocked_windows(exceptions: list[AvailabilityException], target_date: date) -> list[tuple[int, int]] | None:
    """Union of partial-exception windows for the date; None when an all-day exception covers it."""
    windows = []
    for exception in exceptions_covering(exceptions, target_date):
        window = exception.blocked_window()
        if window is None:
            return None
        windows.append(window)
    return merge_windows(windows)


def merge_windows(windows: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def is_blocked(slot_minutes: int, windows: list[tuple[int, int]]) -> bool:
    return any(start <= slot_minutes < end for start, end in windows)


def booked_minutes(appointments: list[Appointment], target_date: date, doctor_id: int | None = None) -> set[int]:
    taken = set()
    for appointment in appointments:
        if appointment.scheduled_date != target_date or not appointment.occupies_slot():
            continue
        if doctor_id is not None and appointment.doctor_id not in (None, doctor_id):
            continue
        taken.add(minutes_of(appointment.appointment_time.time()))
    return taken


def compute_slots(
    target_date: date,
    working_hours: list[WorkingHours],
    exceptions: list[AvailabilityException],
    booked_appointments: list[Appointment],
    availability: DayAvailability | None,
    now: datetime,
    doctor_id: int | None = None,
) -> SlotResult:
    day_hours = hours_for(working_hours, target_date)
    if day_hours.is_closed:
        return SlotResult.closed(target_date, CLOSED_WEEKDAY_REASON.format(day=day_hours.day.value))

    windows = blocked_windows(exceptions, target_date)
    if windows is None:
        return SlotResult.closed(target_date, ALL_DAY_EXCEPTION_REASON)

    if availability is None or not availability.is_available:
        return SlotResult.closed(target_date, SOURCE_UNAVAILABLE_REASON)

    taken = booked_minutes(booked_appointments, target_date, doctor_id)
    now_minutes = minutes_of(now.time()) if target_date == now.date() else None

    slots = []
    for slot in availability.slots:
        try:
            slot_minutes = parse_slot_minutes(slot)
        except ValueError:
            logger.warning('Ignoring unparseable slot %r for %s', slot, target_date)
            continue

        if is_blocked(slot_minutes, windows):
            continue
        if slot_minutes in taken:
            continue
        if now_minutes is not None and slot_minutes <= now_minutes:
            continue
        slots.append(slot)

    return SlotResult(date=target_date, status=SlotResultStatus.OPEN, slots=slots)


def select_day(days: list[DayAvailability], target_date: date) -> DayAvailability | None:
    for day in days:
        if day.date == target_date:
            return day
    return None
