import pytest

from clinic_scheduler.core.errors import (
    ApiError,
    AuthenticationError,
    AvailabilityUnavailableError,
    BookingValidationError,
    InvalidTransitionError,
    OperationInProgressError,
    SchedulingError,
    SlotConflictError,
    TransportError,
    UnexpectedResponseError,
)
from clinic_scheduler.main import app, root
from clinic_scheduler.routes.http_errors import to_http_exception


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (BookingValidationError('Please select a date and time slot.'), 400),
        (AuthenticationError(401, 'expired'), 401),
        (SlotConflictError(409, 'taken'), 409),
        (OperationInProgressError('busy'), 409),
        (InvalidTransitionError('nope'), 409),
        (TransportError('down'), 503),
        (AvailabilityUnavailableError('Unable to fetch availability for this date.'), 503),
        (UnexpectedResponseError('bad payload'), 502),
        (ApiError(404, 'Appointment not found'), 404),
        (SchedulingError('unclassified'), 502),
    ],
)
def test_to_http_exception_maps_status(error: SchedulingError, status_code: int) -> None:
    assert to_http_exception(error).status_code == status_code


def test_transport_detail_is_user_facing() -> None:
    assert to_http_exception(TransportError('socket closed')).detail == (
        'Network error. Please check your internet connection and try again.'
    )


def test_root_reports_service_and_routes_are_mounted() -> None:
    paths = {route.path for route in app.routes}

    assert root() == {'status': 'Clinic Scheduler API Running'}
    assert '/availability/slots' in paths
    assert '/appointments/calendar' in paths
    assert '/appointments/{appointment_id}/cancel' in paths
