"""Date and time helpers shared by every scheduling component.

Slots travel in 12-hour display form ("9:00 AM"); the booking endpoints want
24-hour form ("09:00"). Dates travel as ISO "YYYY-MM-DD" and are displayed as
US "MM-DD-YYYY". Wall-clock values are naive and always mean clinic time.
"""

import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from clinic_scheduler.core import config

_TWELVE_HOUR_PATTERN = re.compile(r'^\s*(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])\s*$')
_TWENTY_FOUR_HOUR_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?\s*(?:Z|[+-]\d{2}:?\d{2})?\s*$')


def clinic_timezone() -> ZoneInfo:
    return ZoneInfo(config.CLINIC_TIMEZONE)


def clinic_now() -> datetime:
    """Current clinic wall-clock time as a naive datetime."""
    return datetime.now(clinic_timezone()).replace(tzinfo=None)


def to_clinic_wall_clock(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(clinic_timezone()).replace(tzinfo=None)


def parse_slot_minutes(slot: str) -> int:
    """Minutes since midnight for a 12-hour or 24-hour time string."""
    match = _TWELVE_HOUR_PATTERN.match(slot)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        modifier = match.group(3).upper()
        if not 1 <= hours <= 12 or minutes > 59:
            raise ValueError(f'Invalid time: {slot!r}')
        if modifier == 'PM' and hours != 12:
            hours += 12
        if modifier == 'AM' and hours == 12:
            hours = 0
        return hours * 60 + minutes

    match = _TWENTY_FOUR_HOUR_PATTERN.match(slot)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        if hours > 23 or minutes > 59:
            raise ValueError(f'Invalid time: {slot!r}')
        return hours * 60 + minutes

    raise ValueError(f'Invalid time: {slot!r}')


def parse_time(value: str) -> time:
    minutes = parse_slot_minutes(value)
    return time(minutes // 60, minutes % 60)


def minutes_of(value: time) -> int:
    return value.hour * 60 + value.minute


def format_12_hour(value: time) -> str:
    period = 'AM' if value.hour < 12 else 'PM'
    hour = value.hour % 12 or 12
    return f'{hour}:{value.minute:02d} {period}'


def format_24_hour(value: time) -> str:
    return f'{value.hour:02d}:{value.minute:02d}'


def to_24_hour(slot: str) -> str:
    return format_24_hour(parse_time(slot))


def time_to_api(value: time) -> str:
    return value.strftime('%H:%M:%S')


def date_to_api(value: date) -> str:
    return value.isoformat()


def date_from_api(value: str) -> date:
    return date.fromisoformat(value.strip()[:10])


def date_to_display(value: date) -> str:
    return value.strftime('%m-%d-%Y')


def is_slot_in_past(slot_date: date, slot: str, now: datetime) -> bool:
    if slot_date != now.date():
        return slot_date < now.date()
    return parse_slot_minutes(slot) <= minutes_of(now.time())
