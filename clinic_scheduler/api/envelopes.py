"""Normalize the clinic API's response envelopes.

Endpoints answer with a bare list, ``{"data": [...]}``, or a list under a
resource-specific key (``appointments``, ``availability``, ``logs``, ...).
Everything past this module sees plain model instances.
"""

from pydantic import ValidationError

from clinic_scheduler.core.errors import UnexpectedResponseError
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.availability import DayAvailability
from clinic_scheduler.models.availability_exception import AvailabilityException
from clinic_scheduler.models.working_hours import WorkingHours, working_hours_from_api

LIST_KEYS = (
    'data',
    'items',
    'appointments',
    'availability',
    'exceptions',
    'working_hours',
    'holidays',
    'patients',
    'logs',
)


def unwrap_list(payload, *keys: str) -> list:
    if isinstance(payload, list):
        return payload

    if isinstance(payload, dict):
        for key in keys or LIST_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                # {"data": {"appointments": [...]}}
                try:
                    return unwrap_list(value, *keys)
                except UnexpectedResponseError:
                    continue

    raise UnexpectedResponseError(f'Expected a list response, got {type(payload).__name__}.')


def unwrap_object(payload) -> dict:
    if isinstance(payload, dict):
        inner = payload.get('data')
        if isinstance(inner, dict):
            return inner
        return payload
    raise UnexpectedResponseError(f'Expected an object response, got {type(payload).__name__}.')


def _decode_each(model, rows: list) -> list:
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as exc:
        raise UnexpectedResponseError(f'Malformed {model.__name__} in response: {exc.errors()[0]["msg"]}') from exc


def decode_appointments(payload) -> list[Appointment]:
    return _decode_each(Appointment, unwrap_list(payload, 'appointments', 'data', 'items'))


def decode_appointment(payload) -> Appointment:
    body = unwrap_object(payload)
    if isinstance(body.get('appointment'), dict):
        body = body['appointment']
    return _decode_each(Appointment, [body])[0]


def decode_availability(payload) -> list[DayAvailability]:
    return _decode_each(DayAvailability, unwrap_list(payload, 'availability', 'data'))


def decode_exceptions(payload) -> list[AvailabilityException]:
    return _decode_each(AvailabilityException, unwrap_list(payload, 'exceptions', 'holidays', 'data'))


def decode_exception(payload) -> AvailabilityException:
    body = unwrap_object(payload)
    if isinstance(body.get('exception'), dict):
        body = body['exception']
    return _decode_each(AvailabilityException, [body])[0]


def decode_working_hours(payload) -> list[WorkingHours]:
    rows = unwrap_list(payload, 'working_hours', 'data')
    try:
        return working_hours_from_api(rows)
    except (ValidationError, ValueError) as exc:
        raise UnexpectedResponseError(f'Malformed working hours in response: {exc}') from exc
