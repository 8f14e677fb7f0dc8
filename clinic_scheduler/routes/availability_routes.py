from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ValidationError

from clinic_scheduler.auth.dependencies import (
    SessionContext,
    get_app_context,
    get_session_context,
    resolve_doctor,
)
from clinic_scheduler.core.context import AppContext
from clinic_scheduler.core.errors import BookingValidationError, SchedulingError
from clinic_scheduler.models.availability_exception import AvailabilityException, split_holidays
from clinic_scheduler.models.working_hours import WorkingHours
from clinic_scheduler.routes.http_errors import to_http_exception
from clinic_scheduler.scheduling.booking import BookingService
from clinic_scheduler.scheduling.slots import SlotResultStatus

router = APIRouter(tags=['availability'])


class SlotsResponse(BaseModel):
    date: date
    status: SlotResultStatus
    slots: list[str]
    reason: str | None = None


class WorkingHoursResponse(BaseModel):
    day: str
    open: str
    close: str
    is_closed: bool


class UpdateWorkingHoursRequest(BaseModel):
    working_hours: list[WorkingHours]


class ExceptionRequest(BaseModel):
    exception_date: date
    end_date: date | None = None
    is_all_day: bool = True
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None
    is_us_holiday: bool = False


class ExceptionResponse(BaseModel):
    id: int | None
    exception_date: date
    end_date: date | None
    is_all_day: bool
    start_time: time | None
    end_time: time | None
    reason: str | None
    is_us_holiday: bool
    date_label: str
    time_label: str


class ExceptionListResponse(BaseModel):
    off_days: list[ExceptionResponse]
    public_holidays: list[ExceptionResponse]


class SyncHolidaysResponse(ExceptionListResponse):
    year: int
    holidays_synced: int


def to_working_hours_response(rows: list[WorkingHours]) -> list[WorkingHoursResponse]:
    return [WorkingHoursResponse(**row.to_display()) for row in rows]


def to_exception_response(exception: AvailabilityException) -> ExceptionResponse:
    return ExceptionResponse(
        id=exception.id,
        exception_date=exception.exception_date,
        end_date=exception.end_date,
        is_all_day=exception.is_all_day,
        start_time=exception.start_time,
        end_time=exception.end_time,
        reason=exception.reason,
        is_us_holiday=exception.is_us_holiday,
        date_label=exception.date_range_label(),
        time_label=exception.time_range_label(),
    )


def to_exception_list(exceptions: list[AvailabilityException]) -> ExceptionListResponse:
    off_days, holidays = split_holidays(exceptions)
    return ExceptionListResponse(
        off_days=[to_exception_response(exception) for exception in off_days],
        public_holidays=[to_exception_response(exception) for exception in holidays],
    )


def build_exception(data: ExceptionRequest, doctor_id: int, exception_id: int | None = None) -> AvailabilityException:
    try:
        return AvailabilityException(id=exception_id, doctor_id=doctor_id, **data.model_dump())
    except ValidationError as exc:
        message = exc.errors()[0]['msg'].removeprefix('Value error, ')
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message) from exc


@router.get('/slots', response_model=SlotsResponse)
async def list_available_slots(
    slot_date: date = Query(..., alias='date'),
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    context = resolve_doctor(context, session, doctor_id)
    try:
        result = await BookingService(context).fetch_slots(slot_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return SlotsResponse(date=result.date, status=result.status, slots=result.slots, reason=result.reason)


@router.get('/working-hours', response_model=list[WorkingHoursResponse])
async def get_working_hours(context: AppContext = Depends(get_app_context)):
    try:
        rows = await context.api.get_working_hours(context.clinic_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_working_hours_response(rows)


@router.put('/working-hours', response_model=list[WorkingHoursResponse])
async def update_working_hours(
    data: UpdateWorkingHoursRequest,
    context: AppContext = Depends(get_app_context),
):
    days = [row.day for row in data.working_hours]
    if len(days) != len(set(days)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Each day of the week may only appear once.',
        )

    try:
        await context.api.update_working_hours(context.clinic_id, data.working_hours)
        rows = await context.api.get_working_hours(context.clinic_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_working_hours_response(rows)


@router.get('/exceptions', response_model=ExceptionListResponse)
async def list_exceptions(
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    context = resolve_doctor(context, session, doctor_id)
    try:
        exceptions = await context.api.list_exceptions(context.doctor_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_exception_list(exceptions)


@router.post('/exceptions', response_model=ExceptionResponse, status_code=status.HTTP_201_CREATED)
async def create_exception(
    data: ExceptionRequest,
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    context = resolve_doctor(context, session, doctor_id)
    try:
        exception = build_exception(data, context.doctor_id)
        created = await context.api.create_exception(exception)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_exception_response(created)


@router.put('/exceptions/{exception_id}', response_model=ExceptionResponse)
async def update_exception(
    exception_id: int,
    data: ExceptionRequest,
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    context = resolve_doctor(context, session, doctor_id)
    try:
        exception = build_exception(data, context.doctor_id, exception_id)
        updated = await context.api.update_exception(exception_id, exception)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return to_exception_response(updated)


@router.delete('/exceptions/{exception_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_exception(exception_id: int, context: AppContext = Depends(get_app_context)):
    try:
        await context.api.delete_exception(exception_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/exceptions/sync-holidays', response_model=SyncHolidaysResponse)
async def sync_holidays(
    year: int | None = Query(default=None, ge=2000, le=2100),
    doctor_id: int | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    context: AppContext = Depends(get_app_context),
):
    context = resolve_doctor(context, session, doctor_id)
    target_year = year or context.today().year
    try:
        if target_year < context.today().year:
            raise BookingValidationError('Holidays can only be synced for the current or a future year.')
        synced = await context.api.sync_holidays(context.doctor_id, target_year)
        exceptions = await context.api.list_exceptions(context.doctor_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    listing = to_exception_list(exceptions)
    return SyncHolidaysResponse(
        year=target_year,
        holidays_synced=synced,
        off_days=listing.off_days,
        public_holidays=listing.public_holidays,
    )
