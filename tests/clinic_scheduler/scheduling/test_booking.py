import asyncio
from datetime import date, datetime

import pytest

from clinic_scheduler.core.context import AppContext
from clinic_scheduler.core.errors import (
    AvailabilityUnavailableError,
    BookingValidationError,
    OperationInProgressError,
    TransportError,
)
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.availability import DayAvailability
from clinic_scheduler.models.working_hours import default_week
from clinic_scheduler.scheduling.booking import (
    PAST_DATE_MESSAGE,
    PAST_SLOT_MESSAGE,
    BookingService,
    CancelAppointmentRequest,
    CreateAppointmentRequest,
    InFlightGuard,
    RescheduleAppointmentRequest,
    build_request,
    normalize_phone,
    partition_appointments,
)
from clinic_scheduler.scheduling.slots import SlotResultStatus

NOW = datetime(2026, 3, 10, 11, 5)


class FakeApi:
    def __init__(self, slots: list[str] | None = None, appointments: list[Appointment] | None = None):
        self.slots = slots or []
        self.appointments = appointments or []
        self.booked: list[dict] = []
        self.cancelled: list[dict] = []
        self.availability_error: Exception | None = None

    async def get_working_hours(self, clinic_id):
        return default_week()

    async def list_exceptions(self, doctor_id):
        return []

    async def list_appointments(self, doctor_id=None, clinic_id=None, status=None, on_date=None):
        return self.appointments

    async def get_doctor_availability(self, clinic_id, doctor_id, start_date, end_date):
        if self.availability_error:
            raise self.availability_error
        return [DayAvailability(date=start_date, is_available=True, morning=self.slots)]

    async def book_appointment(self, body):
        self.booked.append(body)
        return None

    async def reschedule_appointment(self, body):
        self.booked.append(body)
        return None

    async def cancel_appointment(self, body):
        self.cancelled.append(body)

    async def list_patient_appointments(self, patient_id):
        return self.appointments


def make_context(api: FakeApi) -> AppContext:
    return AppContext(api=api, clinic_id=1, doctor_id=2, clock=lambda: NOW)


def make_request(**overrides) -> CreateAppointmentRequest:
    fields = {
        'clinic_id': 1,
        'doctor_id': 2,
        'patient_id': 3,
        'date': date(2026, 3, 10),
        'slot': '2:30 PM',
        'phone': '(901) 555-0100',
    }
    fields.update(overrides)
    return build_request(CreateAppointmentRequest, **fields)


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ('(901) 555-0100', '+19015550100'),
        ('1-901-555-0100', '+19015550100'),
        ('+44 20 7946 0958', '+442079460958'),
    ],
)
def test_normalize_phone(raw: str, expected: str) -> None:
    assert normalize_phone(raw) == expected


def test_create_request_converts_slot_to_24_hour() -> None:
    assert make_request().to_api() == {
        'clinic_id': 1,
        'doctor_id': 2,
        'patient_id': 3,
        'date': '2026-03-10',
        'time': '14:30',
        'phone': '+19015550100',
    }


def test_reschedule_request_includes_appointment_id() -> None:
    request = build_request(
        RescheduleAppointmentRequest,
        appointment_id=9,
        clinic_id=1,
        doctor_id=2,
        patient_id=3,
        date=date(2026, 3, 11),
        slot='12:00 PM',
        phone='9015550100',
    )

    assert request.to_api()['appointment_id'] == 9
    assert request.to_api()['time'] == '12:00'


@pytest.mark.parametrize(
    ('overrides', 'message'),
    [
        ({'slot': None}, 'Please select a date and time slot.'),
        ({'date': None}, 'Please select a date and time slot.'),
        ({'phone': '555'}, 'A contact phone number is required.'),
        ({'slot': '  '}, 'Please select a time slot.'),
    ],
)
def test_build_request_reports_first_validation_message(overrides: dict, message: str) -> None:
    with pytest.raises(BookingValidationError) as exception_info:
        make_request(**overrides)

    assert exception_info.value.message == message


def test_cancel_request_allows_missing_phone() -> None:
    request = build_request(CancelAppointmentRequest, appointment_id=4, clinic_id=1, doctor_id=2, patient_id=3, phone=None)

    assert request.to_api()['phone'] is None


def test_partition_splits_on_today_and_cancellation() -> None:
    today = date(2026, 3, 10)
    later = Appointment(id=1, appointment_time=datetime(2026, 3, 12, 9, 0))
    earlier_today = Appointment(id=2, appointment_time=datetime(2026, 3, 10, 8, 0))
    cancelled_future = Appointment(id=3, appointment_time=datetime(2026, 3, 11, 9, 0), status='cancelled')
    completed = Appointment(id=4, appointment_time=datetime(2026, 3, 1, 9, 0), status='completed')

    partition = partition_appointments([later, completed, cancelled_future, earlier_today], today)

    assert [appointment.id for appointment in partition.upcoming] == [2, 1]
    assert [appointment.id for appointment in partition.past] == [3, 4]


def test_fetch_slots_filters_booked_and_past_times() -> None:
    booked = Appointment(id=7, doctor_id=2, appointment_time=datetime(2026, 3, 10, 13, 0))
    api = FakeApi(slots=['9:00 AM', '11:00 AM', '1:00 PM', '3:00 PM'], appointments=[booked])

    result = asyncio.run(BookingService(make_context(api)).fetch_slots(date(2026, 3, 10)))

    assert result.status == SlotResultStatus.OPEN
    assert result.slots == ['3:00 PM']


def test_fetch_slots_rejects_past_dates() -> None:
    with pytest.raises(BookingValidationError, match=PAST_DATE_MESSAGE):
        asyncio.run(BookingService(make_context(FakeApi())).fetch_slots(date(2026, 3, 9)))


def test_fetch_slots_reports_unreachable_source() -> None:
    api = FakeApi()
    api.availability_error = TransportError('down')

    with pytest.raises(AvailabilityUnavailableError):
        asyncio.run(BookingService(make_context(api)).fetch_slots(date(2026, 3, 11)))


def test_book_refuses_slot_that_already_started() -> None:
    api = FakeApi()

    with pytest.raises(BookingValidationError, match=PAST_SLOT_MESSAGE):
        asyncio.run(BookingService(make_context(api)).book(make_request(slot='11:00 AM')))

    assert api.booked == []


def test_book_sends_request_to_api() -> None:
    api = FakeApi()

    asyncio.run(BookingService(make_context(api)).book(make_request()))

    assert api.booked[0]['time'] == '14:30'


def test_in_flight_guard_serializes_same_key() -> None:
    guard = InFlightGuard()

    async def scenario():
        async with guard.hold(5):
            with pytest.raises(OperationInProgressError):
                async with guard.hold(5):
                    pass
            async with guard.hold(6):
                pass
        async with guard.hold(5):
            return True

    assert asyncio.run(scenario()) is True


def test_cancel_and_patient_partition() -> None:
    upcoming = Appointment(id=8, appointment_time=datetime(2026, 3, 20, 10, 0))
    api = FakeApi(appointments=[upcoming])
    service = BookingService(make_context(api))
    request = build_request(CancelAppointmentRequest, appointment_id=8, clinic_id=1, doctor_id=2, patient_id=3, phone='9015550100')

    asyncio.run(service.cancel(request))
    partition = asyncio.run(service.patient_appointments(3))

    assert api.cancelled == [{'appointment_id': 8, 'clinic_id': 1, 'doctor_id': 2, 'patient_id': 3, 'phone': '+19015550100'}]
    assert [appointment.id for appointment in partition.upcoming] == [8]


def test_cancel_refuses_completed_appointment() -> None:
    finished = Appointment(id=8, appointment_time=datetime(2026, 3, 2, 10, 0), status='completed')
    api = FakeApi(appointments=[finished])
    service = BookingService(make_context(api))
    request = build_request(CancelAppointmentRequest, appointment_id=8, clinic_id=1, doctor_id=2, patient_id=3, phone='9015550100')

    with pytest.raises(BookingValidationError, match='completed and can no longer be changed'):
        asyncio.run(service.cancel(request))

    assert api.cancelled == []


def test_reschedule_refuses_cancelled_appointment() -> None:
    cancelled = Appointment(id=9, appointment_time=datetime(2026, 3, 20, 10, 0), status='cancelled')
    api = FakeApi(appointments=[cancelled])
    service = BookingService(make_context(api))
    request = build_request(
        RescheduleAppointmentRequest,
        appointment_id=9,
        clinic_id=1,
        doctor_id=2,
        patient_id=3,
        date=date(2026, 3, 11),
        slot='12:00 PM',
        phone='9015550100',
    )

    with pytest.raises(BookingValidationError):
        asyncio.run(service.reschedule(request))

    assert api.booked == []
