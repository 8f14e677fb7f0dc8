"""Clinic working hours model definitions."""

from datetime import date, time
from enum import Enum

from pydantic import BaseModel, field_validator, model_validator

from clinic_scheduler.core.timeutils import format_12_hour, parse_time


class Weekday(str, Enum):
    MONDAY = 'Monday'
    TUESDAY = 'Tuesday'
    WEDNESDAY = 'Wednesday'
    THURSDAY = 'Thursday'
    FRIDAY = 'Friday'
    SATURDAY = 'Saturday'
    SUNDAY = 'Sunday'

    @property
    def abbreviation(self) -> str:
        return self.value[:3]

    @classmethod
    def from_label(cls, value: str) -> 'Weekday':
        normalized = value.strip().lower()
        for weekday in cls:
            if normalized in (weekday.value.lower(), weekday.abbreviation.lower()):
                return weekday
        raise ValueError(f'Unknown day of week: {value!r}')

    @classmethod
    def for_date(cls, value: date) -> 'Weekday':
        return list(cls)[value.weekday()]


class WorkingHours(BaseModel):
    """Open/close times for one weekday of a clinic."""

    day: Weekday
    open: time
    close: time
    is_closed: bool = False

    @field_validator('day', mode='before')
    @classmethod
    def parse_day(cls, value):
        if isinstance(value, str):
            return Weekday.from_label(value)
        return value

    @field_validator('open', 'close', mode='before')
    @classmethod
    def parse_wall_clock(cls, value):
        if isinstance(value, str):
            return parse_time(value)
        return value

    @model_validator(mode='after')
    def validate_open_before_close(self) -> 'WorkingHours':
        if not self.is_closed and self.open >= self.close:
            raise ValueError(f'{self.day.value}: opening time must be before closing time.')
        return self

    @property
    def display_open(self) -> str:
        return format_12_hour(self.open)

    @property
    def display_close(self) -> str:
        return format_12_hour(self.close)

    def to_display(self) -> dict:
        return {
            'day': self.day.value,
            'open': self.display_open,
            'close': self.display_close,
            'is_closed': self.is_closed,
        }


def default_week() -> list[WorkingHours]:
    return [
        WorkingHours(
            day=weekday,
            open=time(9, 0),
            close=time(17, 0),
            is_closed=weekday in (Weekday.SATURDAY, Weekday.SUNDAY),
        )
        for weekday in Weekday
    ]


def complete_week(rows: list[WorkingHours]) -> list[WorkingHours]:
    """One row per weekday, Monday first; missing days take the default."""
    by_day = {row.day: row for row in rows}
    return [by_day.get(default.day, default) for default in default_week()]


def hours_for(rows: list[WorkingHours], value: date) -> WorkingHours:
    by_day = {row.day: row for row in complete_week(rows)}
    return by_day[Weekday.for_date(value)]


def working_hours_from_api(rows: list[dict]) -> list[WorkingHours]:
    """Decode API rows: {day_of_week: "Mon", start_time: "09:00:00.000Z", end_time, is_closed}."""
    decoded = []
    for row in rows:
        decoded.append(
            WorkingHours(
                day=row.get('day_of_week') or row.get('day'),
                open=row.get('start_time') or row.get('open') or '09:00',
                close=row.get('end_time') or row.get('close') or '17:00',
                is_closed=row.get('is_closed') or False,
            )
        )
    return complete_week(decoded)


def working_hours_to_api(rows: list[WorkingHours]) -> list[dict]:
    return [
        {
            'day_of_week': row.day.abbreviation,
            'start_time': row.open.strftime('%H:%M:%S') + '.000Z',
            'end_time': row.close.strftime('%H:%M:%S') + '.000Z',
            'is_closed': row.is_closed,
        }
        for row in complete_week(rows)
    ]
