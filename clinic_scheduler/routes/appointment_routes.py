from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from clinic_scheduler.auth.dependencies import (
    SessionContext,
    get_app_context,
    get_session_context,
    resolve_doctor,
)
from clinic_scheduler.core.context import AppContext
from clinic_scheduler.core.errors import SchedulingError
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.routes.http_errors import to_http_exception
from clinic_scheduler.scheduling.booking import (
    BookingService,
    CancelAppointmentRequest,
    CreateAppointmentRequest,
    InFlightGuard,
    RescheduleAppointmentRequest,
    build_request,
)
from clinic_scheduler.scheduling.calendar_grid import (
    MONTH_NAMES,
    WEEKDAY_HEADERS,
    appointments_on,
    build_grid,
)

router = APIRouter(tags=['appointments'])

# Shared by every request in this process so a second change to the same
# appointment is refused while the first is in flight.
booking_guard = InFlightGuard()


class AppointmentResponse(BaseModel):
    id: int | None
    clinic_id: int | None
    doctor_id: int | None
    patient_id: int | None
    appointment_time: datetime
    date: date
    time: str
    status: str
    status_bucket: str


class CalendarCellResponse(BaseModel):
    day: int
    date: date
    is_current_month: bool
    is_today: bool
    appointment_count: int
    appointments: list[AppointmentResponse]


class CalendarResponse(BaseModel):
    month: int
    year: int
    month_name: str
    weekdays: list[str]
    cells: list[CalendarCellResponse]


class PatientAppointmentsResponse(BaseModel):
    upcoming: list[AppointmentResponse]
    past: list[AppointmentResponse]


class BookAppointmentBody(BaseModel):
    patient_id: int
    slot_date: date | None = Field(default=None, alias='date')
    slot: str | None = None
    phone: str | None = None


class CancelAppointmentBody(BaseModel):
    patient_id: int
    phone: str | None = None


class MutationResponse(BaseModel):
    message: str
    appointment: AppointmentResponse | None = None


def doctor_filter(context: AppContext, session: SessionContext, doctor_id: int | None) -> int | None:
    # Admins without an explicit doctor see the whole clinic.
    if doctor_id is None and session.is_admin:
        return None
    return resolve_doctor(context, session, doctor_id).doctor_id


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        clinic_id=appointment.clinic_id,
        doctor_id=appointment.doctor_id,
        patient_id=appointment.patient_id,
        appointment_time=appointment.appointment_time,
        date=appointment.scheduled_date,
        time=appointment.display_time,
        status=appointment.status,
        status_bucket=appointment.status_bucket,
    )


@router.get('/calendar', response_model=CalendarResponse)
async def get_calendar(
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=1900, le=2200),
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    today = context.today()
    month = month or today.month
    year = year or today.year

    try:
        filter_doctor = doctor_filter(context, session, doctor_id)
        appointments = await context.api.list_appointments(doctor_id=filter_doctor)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    cells = build_grid(month, year, appointments, today)
    return CalendarResponse(
        month=month,
        year=year,
        month_name=MONTH_NAMES[month - 1],
        weekdays=WEEKDAY_HEADERS,
        cells=[
            CalendarCellResponse(
                day=cell.day,
                date=cell.date,
                is_current_month=cell.is_current_month,
                is_today=cell.is_today,
                appointment_count=cell.appointment_count,
                appointments=[to_appointment_response(appointment) for appointment in cell.appointments],
            )
            for cell in cells
        ],
    )


@router.get('/day', response_model=list[AppointmentResponse])
async def list_day_appointments(
    day: date | None = Query(default=None, alias='date'),
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    target = day or context.today()
    try:
        filter_doctor = doctor_filter(context, session, doctor_id)
        appointments = await context.api.list_appointments(doctor_id=filter_doctor, on_date=target)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return [to_appointment_response(appointment) for appointment in appointments_on(appointments, target)]


@router.get('/patients/{patient_id}', response_model=PatientAppointmentsResponse)
async def list_patient_appointments(patient_id: int, context: AppContext = Depends(get_app_context)):
    try:
        partition = await BookingService(context, booking_guard).patient_appointments(patient_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return PatientAppointmentsResponse(
        upcoming=[to_appointment_response(appointment) for appointment in partition.upcoming],
        past=[to_appointment_response(appointment) for appointment in partition.past],
    )


@router.post('', response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    data: BookAppointmentBody,
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    try:
        context = resolve_doctor(context, session, doctor_id)
        request = build_request(
            CreateAppointmentRequest,
            clinic_id=context.clinic_id,
            doctor_id=context.doctor_id,
            patient_id=data.patient_id,
            date=data.slot_date,
            slot=data.slot,
            phone=data.phone,
        )
        appointment = await BookingService(context, booking_guard).book(request)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return MutationResponse(
        message='Appointment scheduled successfully',
        appointment=to_appointment_response(appointment) if appointment else None,
    )


@router.post('/{appointment_id}/reschedule', response_model=MutationResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: BookAppointmentBody,
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    try:
        context = resolve_doctor(context, session, doctor_id)
        request = build_request(
            RescheduleAppointmentRequest,
            appointment_id=appointment_id,
            clinic_id=context.clinic_id,
            doctor_id=context.doctor_id,
            patient_id=data.patient_id,
            date=data.slot_date,
            slot=data.slot,
            phone=data.phone,
        )
        appointment = await BookingService(context, booking_guard).reschedule(request)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return MutationResponse(
        message='Appointment rescheduled successfully',
        appointment=to_appointment_response(appointment) if appointment else None,
    )


@router.post('/{appointment_id}/cancel', response_model=MutationResponse)
async def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentBody,
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    try:
        context = resolve_doctor(context, session, doctor_id)
        request = build_request(
            CancelAppointmentRequest,
            appointment_id=appointment_id,
            clinic_id=context.clinic_id,
            doctor_id=context.doctor_id,
            patient_id=data.patient_id,
            phone=data.phone,
        )
        await BookingService(context, booking_guard).cancel(request)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return MutationResponse(message='Appointment cancelled successfully')
