import calendar
from datetime import date

from pydantic import BaseModel

from clinic_scheduler.models.appointment import Appointment

GRID_CELLS = 42  # 6 weeks * 7 days
MONTH_NAMES = list(calendar.month_name)[1:]
WEEKDAY_HEADERS = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']


class CalendarCell(BaseModel):
    day: int
    date: date
    is_current_month: bool
    is_today: bool = False
    appointments: list[Appointment] = []

    @property
    def appointment_count(self) -> int:
        return len(self.appointments)

def previous_month(month: int, year: int) -> tuple[int, int]:
    if month == 1:
        return 12, year - 1
    return month - 1, year


def next_month(month: int, year: int) -> tuple[int, int]:
    if month == 12:
        return 1, year + 1
    return month + 1, year


def leading_blank_count(month: int, year: int) -> int:
    """Weekday of the 1st with Sunday as 0."""
    return (date(year, month, 1).weekday() + 1) % 7


def sort_by_time(appointments: list[Appointment]) -> list[Appointment]:
    return sorted(appointments, key=lambda appointment: appointment.appointment_time)


def appointments_on(appointments: list[Appointment], value: date) -> list[Appointment]:
    return sort_by_time([appointment for appointment in appointments if appointment.scheduled_date == value])


def build_grid(month: int, year: int, appointments: list[Appointment], today: date) -> list[CalendarCell]:
    if not 1 <= month <= 12:
        raise ValueError(f'Month must be between 1 and 12, got {month}.')

    by_date: dict[date, list[Appointment]] = {}
    for appointment in appointments:
        by_date.setdefault(appointment.scheduled_date, []).append(appointment)

    cells: list[CalendarCell] = []

    prev_month, prev_year = previous_month(month, year)
    days_in_prev_month = calendar.monthrange(prev_year, prev_month)[1]
    for offset in range(leading_blank_count(month, year) - 1, -1, -1):
        day = days_in_prev_month - offset
        cells.append(CalendarCell(day=day, date=date(prev_year, prev_month, day), is_current_month=False))

    days_in_month = calendar.monthrange(year, month)[1]
    for day in range(1, days_in_month + 1):
        cell_date = date(year, month, day)
        cells.append(
            CalendarCell(
                day=day,
                date=cell_date,
                is_current_month=True,
                is_today=cell_date == today,
                appointments=sort_by_time(by_date.get(cell_date, [])),
            )
        )

    following_month, following_year = next_month(month, year)
    for day in range(1, GRID_CELLS - len(cells) + 1):
        cells.append(CalendarCell(day=day, date=date(following_year, following_month, day), is_current_month=False))

    return cells
