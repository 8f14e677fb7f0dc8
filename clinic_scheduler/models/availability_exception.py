"""Availability exception model definitions."""

from datetime import date, time

from pydantic import BaseModel, field_validator, model_validator

from clinic_scheduler.core.timeutils import (
    date_to_api,
    date_to_display,
    format_12_hour,
    minutes_of,
    parse_time,
    time_to_api,
)

MAX_REASON_LENGTH = 255


class AvailabilityException(BaseModel):
    """An off-day or holiday for a doctor, optionally spanning several days.

    ``end_date`` is inclusive. When ``is_all_day`` is false the exception only
    blocks ``[start_time, end_time)`` on each covered day.
    """

    id: int | None = None
    doctor_id: int | None = None
    exception_date: date
    end_date: date | None = None
    is_all_day: bool = True
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None
    is_us_holiday: bool = False

    @field_validator('exception_date', 'end_date', mode='before')
    @classmethod
    def parse_api_date(cls, value):
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            return stripped[:10]
        return value

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_wall_clock(cls, value):
        if isinstance(value, str):
            if not value.strip():
                return None
            return parse_time(value)
        return value

    @field_validator('reason')
    @classmethod
    def normalize_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')

        return normalized

    @model_validator(mode='after')
    def validate_range(self) -> 'AvailabilityException':
        if self.end_date is not None and self.end_date < self.exception_date:
            raise ValueError('End date cannot be before the start date.')

        if self.is_all_day:
            self.start_time = None
            self.end_time = None
            return self

        if self.start_time is None or self.end_time is None:
            raise ValueError('Start and end times are required unless the exception is all day.')
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self

    @property
    def last_date(self) -> date:
        return self.end_date or self.exception_date

    def covers(self, value: date) -> bool:
        return self.exception_date <= value <= self.last_date

    def blocked_window(self) -> tuple[int, int] | None:
        """Half-open minute window blocked on each covered day; None when all day."""
        if self.is_all_day:
            return None
        return minutes_of(self.start_time), minutes_of(self.end_time)

    def date_range_label(self) -> str:
        if self.end_date and self.end_date != self.exception_date:
            return f'{date_to_display(self.exception_date)} - {date_to_display(self.end_date)}'
        return date_to_display(self.exception_date)

    def time_range_label(self) -> str:
        if self.is_all_day:
            return 'All Day'
        return f'{format_12_hour(self.start_time)} - {format_12_hour(self.end_time)}'

    def to_api(self) -> dict:
        payload = {
            'exception_date': date_to_api(self.exception_date),
            'end_date': date_to_api(self.end_date) if self.end_date else None,
            'is_all_day': self.is_all_day,
            'start_time': None if self.is_all_day else time_to_api(self.start_time),
            'end_time': None if self.is_all_day else time_to_api(self.end_time),
            'reason': self.reason,
        }
        if self.id is None:
            payload['doctor_id'] = self.doctor_id
            payload['is_us_holiday'] = self.is_us_holiday
        return payload


def split_holidays(exceptions: list[AvailabilityException]) -> tuple[list[AvailabilityException], list[AvailabilityException]]:
    """Return (off_days, public_holidays)."""
    off_days = [exception for exception in exceptions if not exception.is_us_holiday]
    holidays = [exception for exception in exceptions if exception.is_us_holiday]
    return off_days, holidays


def exceptions_covering(exceptions: list[AvailabilityException], value: date) -> list[AvailabilityException]:
    return [exception for exception in exceptions if exception.covers(value)]
