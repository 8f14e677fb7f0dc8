import asyncio
import logging
import re
from contextlib import asynccontextmanager
from datetime import date

from pydantic import BaseModel, ValidationError, field_validator

from clinic_scheduler.core.context import AppContext
from clinic_scheduler.core.errors import (
    AvailabilityUnavailableError,
    BookingValidationError,
    OperationInProgressError,
    TransportError,
)
from clinic_scheduler.core.timeutils import date_to_api, is_slot_in_past, parse_slot_minutes, to_24_hour
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling.slots import SlotResult, compute_slots, select_day
from clinic_scheduler.scheduling.status import AppointmentStatus, can_transition, is_terminal

logger = logging.getLogger(__name__)

PAST_SLOT_MESSAGE = 'The selected time has already passed. Please choose another time slot.'
PAST_DATE_MESSAGE = 'Appointments cannot be scheduled on a past date.'


def normalize_phone(value: str) -> str:
    """US numbers become +1XXXXXXXXXX; anything already in E.164 is kept."""
    stripped = value.strip()
    if stripped.startswith('+'):
        return '+' + re.sub(r'\D', '', stripped)
    digits = re.sub(r'\D', '', stripped)
    if len(digits) == 11 and digits.startswith('1'):
        digits = digits[1:]
    return '+1' + digits


class CreateAppointmentRequest(BaseModel):
    clinic_id: int
    doctor_id: int
    patient_id: int
    date: date
    slot: str
    phone: str

    @field_validator('slot')
    @classmethod
    def validate_slot(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please select a time slot.')
        parse_slot_minutes(normalized)
        return normalized

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str) -> str:
        normalized = normalize_phone(value)
        if len(normalized) < 11:
            raise ValueError('A contact phone number is required.')
        return normalized

    def to_api(self) -> dict:
        return {
            'clinic_id': self.clinic_id,
            'doctor_id': self.doctor_id,
            'patient_id': self.patient_id,
            'date': date_to_api(self.date),
            'time': to_24_hour(self.slot),
            'phone': self.phone,
        }


class RescheduleAppointmentRequest(CreateAppointmentRequest):
    appointment_id: int

    def to_api(self) -> dict:
        return {'appointment_id': self.appointment_id, **super().to_api()}


class CancelAppointmentRequest(BaseModel):
    appointment_id: int
    clinic_id: int
    doctor_id: int
    patient_id: int
    phone: str | None = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return normalize_phone(value)

    def to_api(self) -> dict:
        return {
            'appointment_id': self.appointment_id,
            'clinic_id': self.clinic_id,
            'doctor_id': self.doctor_id,
            'patient_id': self.patient_id,
            'phone': self.phone,
        }


def build_request(model: type[BaseModel], **fields) -> BaseModel:
    missing = [name for name, value in fields.items() if value is None and model.model_fields[name].is_required()]
    if missing:
        if 'date' in missing or 'slot' in missing:
            raise BookingValidationError('Please select a date and time slot.')
        raise BookingValidationError(f'Missing required field: {missing[0]}.')
    try:
        return model(**fields)
    except ValidationError as exc:
        message = exc.errors()[0]['msg'].removeprefix('Value error, ')
        raise BookingValidationError(message) from exc


def ensure_not_in_past(slot_date: date, slot: str, context: AppContext) -> None:
    now = context.now()
    if slot_date < now.date():
        raise BookingValidationError(PAST_DATE_MESSAGE)
    if is_slot_in_past(slot_date, slot, now):
        raise BookingValidationError(PAST_SLOT_MESSAGE)


def ensure_status_change(appointment: Appointment | None, target: AppointmentStatus) -> None:
    """Refuse a change the status rules forbid; unknown records and statuses are left to the server."""
    if appointment is None or appointment.state == AppointmentStatus.UNKNOWN:
        return
    if can_transition(appointment.state, target):
        return
    if is_terminal(appointment.state):
        raise BookingValidationError(f'This appointment is {appointment.state.value} and can no longer be changed.')
    raise BookingValidationError(f'An appointment that is {appointment.state.value} cannot be {target.value}.')


class AppointmentPartition(BaseModel):
    upcoming: list[Appointment] = []
    past: list[Appointment] = []


def is_upcoming(appointment: Appointment, today: date) -> bool:
    return appointment.scheduled_date >= today and appointment.state != AppointmentStatus.CANCELLED


def partition_appointments(appointments: list[Appointment], today: date) -> AppointmentPartition:
    upcoming = [appointment for appointment in appointments if is_upcoming(appointment, today)]
    past = [appointment for appointment in appointments if not is_upcoming(appointment, today)]
    upcoming.sort(key=lambda appointment: appointment.appointment_time)
    past.sort(key=lambda appointment: appointment.appointment_time, reverse=True)
    return AppointmentPartition(upcoming=upcoming, past=past)


class InFlightGuard:
    """Allows one mutating call per key (usually an appointment id) at a time."""

    def __init__(self):
        self._active: set = set()

    @asynccontextmanager
    async def hold(self, key):
        if key in self._active:
            raise OperationInProgressError('Another change to this appointment is still being saved.')
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)


class BookingService:
    """Book, reschedule and cancel through the clinic API with local safeguards."""

    def __init__(self, context: AppContext, guard: InFlightGuard | None = None):
        self.context = context
        self.guard = guard or InFlightGuard()

    async def fetch_slots(self, target_date: date) -> SlotResult:
        if target_date < self.context.today():
            raise BookingValidationError(PAST_DATE_MESSAGE)

        api = self.context.api
        clinic_id = self.context.clinic_id
        doctor_id = self.context.doctor_id
        try:
            working_hours, exceptions, appointments, days = await asyncio.gather(
                api.get_working_hours(clinic_id),
                api.list_exceptions(doctor_id),
                api.list_appointments(doctor_id=doctor_id, on_date=target_date),
                api.get_doctor_availability(clinic_id, doctor_id, target_date, target_date),
            )
        except AvailabilityUnavailableError:
            raise
        except TransportError as exc:
            raise AvailabilityUnavailableError('Unable to fetch availability for this date.') from exc

        return compute_slots(
            target_date,
            working_hours,
            exceptions,
            appointments,
            select_day(days, target_date),
            now=self.context.now(),
            doctor_id=doctor_id,
        )

    async def book(self, request: CreateAppointmentRequest) -> Appointment | None:
        ensure_not_in_past(request.date, request.slot, self.context)
        async with self.guard.hold(('new', request.patient_id)):
            appointment = await self.context.api.book_appointment(request.to_api())
        logger.info(
            'Booked appointment for patient %s with doctor %s on %s at %s',
            request.patient_id, request.doctor_id, request.date, request.slot,
        )
        return appointment

    async def reschedule(
        self,
        request: RescheduleAppointmentRequest,
        current: Appointment | None = None,
    ) -> Appointment | None:
        ensure_not_in_past(request.date, request.slot, self.context)
        async with self.guard.hold(request.appointment_id):
            current = current or await self.find_appointment(request.patient_id, request.appointment_id)
            ensure_status_change(current, AppointmentStatus.RESCHEDULED)
            appointment = await self.context.api.reschedule_appointment(request.to_api())
        logger.info('Rescheduled appointment %s to %s at %s', request.appointment_id, request.date, request.slot)
        return appointment

    async def cancel(self, request: CancelAppointmentRequest, current: Appointment | None = None) -> None:
        async with self.guard.hold(request.appointment_id):
            current = current or await self.find_appointment(request.patient_id, request.appointment_id)
            ensure_status_change(current, AppointmentStatus.CANCELLED)
            await self.context.api.cancel_appointment(request.to_api())
        logger.info('Cancelled appointment %s', request.appointment_id)

    async def find_appointment(self, patient_id: int, appointment_id: int) -> Appointment | None:
        for appointment in await self.context.api.list_patient_appointments(patient_id):
            if appointment.id == appointment_id:
                return appointment
        return None

    async def patient_appointments(self, patient_id: int) -> AppointmentPartition:
        appointments = await self.context.api.list_patient_appointments(patient_id)
        return partition_appointments(appointments, self.context.today())
