"""Appointment model definitions."""

from datetime import date, datetime

from pydantic import BaseModel, field_validator, model_validator

from clinic_scheduler.core.timeutils import (
    date_from_api,
    format_12_hour,
    parse_time,
    to_clinic_wall_clock,
)
from clinic_scheduler.scheduling.status import (
    AppointmentStatus,
    display_bucket,
    frees_slot,
    parse_status,
)


class Appointment(BaseModel):
    """Represents a booked appointment as reported by the clinic API.

    ``appointment_time`` is clinic wall-clock time. ``status`` keeps the raw
    string so values the dashboard does not know yet still display.
    """

    id: int | None = None
    clinic_id: int | None = None
    doctor_id: int | None = None
    patient_id: int | None = None
    appointment_time: datetime
    status: str = AppointmentStatus.SCHEDULED.value
    phone: str | None = None

    @model_validator(mode='before')
    @classmethod
    def combine_split_date_and_time(cls, data):
        if not isinstance(data, dict):
            return data

        appointment_date = data.get('appointment_date')
        appointment_time = data.get('appointment_time')
        if not appointment_date or isinstance(appointment_time, datetime):
            return data

        try:
            wall_clock = parse_time(appointment_time) if appointment_time else None
        except (TypeError, ValueError):
            return data

        merged = dict(data)
        merged['appointment_time'] = datetime.combine(
            date_from_api(str(appointment_date)),
            wall_clock or datetime.min.time(),
        )
        return merged

    @field_validator('appointment_time')
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return to_clinic_wall_clock(value).replace(second=0, microsecond=0)

    @field_validator('status', mode='before')
    @classmethod
    def default_status(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return AppointmentStatus.SCHEDULED.value
        return value

    @property
    def state(self) -> AppointmentStatus:
        return parse_status(self.status)

    @property
    def scheduled_date(self) -> date:
        return self.appointment_time.date()

    @property
    def display_time(self) -> str:
        return format_12_hour(self.appointment_time.time())

    @property
    def status_bucket(self) -> str:
        return display_bucket(self.state)

    def occupies_slot(self) -> bool:
        return not frees_slot(self.state)
