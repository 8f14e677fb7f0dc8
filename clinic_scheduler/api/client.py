import logging
from datetime import date

import httpx

from clinic_scheduler.api.envelopes import (
    decode_appointment,
    decode_appointments,
    decode_availability,
    decode_exception,
    decode_exceptions,
    decode_working_hours,
    unwrap_object,
)
from clinic_scheduler.core import config
from clinic_scheduler.core.errors import (
    ApiError,
    AuthenticationError,
    AvailabilityUnavailableError,
    SlotConflictError,
    TransportError,
    UnexpectedResponseError,
)
from clinic_scheduler.core.timeutils import date_to_api
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.availability import DayAvailability
from clinic_scheduler.models.availability_exception import AvailabilityException
from clinic_scheduler.models.working_hours import WorkingHours, working_hours_to_api

logger = logging.getLogger(__name__)

CONFLICT_MARKERS = ('already booked', 'not available', 'no longer available', 'slot taken', 'conflict')


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f'HTTP {response.status_code}: {response.reason_phrase}'

    if isinstance(body, dict):
        for key in ('message', 'detail', 'error'):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if value:
                return str(value)
    return f'HTTP {response.status_code}: {response.reason_phrase}'


def _clean_params(params: dict | None) -> dict | None:
    if params is None:
        return None
    return {key: value for key, value in params.items() if value is not None}


class ClinicApiClient:
    """Async client for the remote clinic REST API.

    The bearer token comes from the caller's session; this client never
    refreshes or stores it. No request is retried.
    """

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or config.CLINIC_API_BASE_URL,
            headers={
                'Authorization': f'Bearer {token}',
                'Content-Type': 'application/json',
            },
            timeout=timeout or config.API_TIMEOUT_SECONDS,
            verify=config.API_VERIFY_TLS,
            transport=transport,
        )

    async def __aenter__(self) -> 'ClinicApiClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        booking: bool = False,
    ):
        try:
            response = await self._client.request(method, path, params=_clean_params(params), json=json)
        except httpx.TimeoutException as exc:
            logger.warning('%s %s timed out', method, path)
            raise TransportError('The clinic server took too long to respond.') from exc
        except httpx.TransportError as exc:
            logger.warning('%s %s failed: %s', method, path, exc)
            raise TransportError('Unable to reach the clinic server.') from exc
        except httpx.RequestError as exc:
            logger.warning('%s %s could not be completed: %s', method, path, exc)
            raise TransportError('The request to the clinic server could not be completed.') from exc

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise UnexpectedResponseError(f'{method} {path} returned a non-JSON body.') from exc

        message = _server_message(response)
        status_code = response.status_code
        logger.warning('%s %s -> %s: %s', method, path, status_code, message)

        if status_code in (401, 403):
            raise AuthenticationError(status_code, message)
        if booking and (status_code == 409 or any(marker in message.lower() for marker in CONFLICT_MARKERS)):
            raise SlotConflictError(status_code, message)
        if status_code >= 500:
            raise TransportError(message)
        raise ApiError(status_code, message)

    async def get_working_hours(self, clinic_id: int) -> list[WorkingHours]:
        payload = await self._request('GET', f'/dashboard/clinics/{clinic_id}/working-hours')
        return decode_working_hours(payload)

    async def update_working_hours(self, clinic_id: int, working_hours: list[WorkingHours]) -> dict:
        payload = await self._request(
            'PUT',
            '/dashboard/clinics/working-hours',
            json={'clinic_id': clinic_id, 'working_hours': working_hours_to_api(working_hours)},
        )
        return payload or {}

    async def list_exceptions(self, doctor_id: int) -> list[AvailabilityException]:
        payload = await self._request('GET', '/dashboard/availability/exceptions', params={'doctor_id': doctor_id})
        return decode_exceptions(payload)

    async def create_exception(self, exception: AvailabilityException) -> AvailabilityException:
        payload = await self._request('POST', '/dashboard/availability/exceptions', json=exception.to_api())
        return decode_exception(payload)

    async def update_exception(self, exception_id: int, exception: AvailabilityException) -> AvailabilityException:
        body = exception.model_copy(update={'id': exception_id}).to_api()
        payload = await self._request('PUT', f'/dashboard/availability/exceptions/{exception_id}', json=body)
        return decode_exception(payload)

    async def delete_exception(self, exception_id: int) -> None:
        await self._request('DELETE', f'/dashboard/availability/exceptions/{exception_id}')

    async def sync_holidays(self, doctor_id: int, year: int) -> int:
        payload = await self._request(
            'POST',
            '/dashboard/availability/exceptions/sync-holidays',
            json={'doctor_id': doctor_id, 'year': year},
        )
        body = unwrap_object(payload or {})
        return int(body.get('holidays_synced') or 0)

    async def get_doctor_availability(
        self,
        clinic_id: int,
        doctor_id: int,
        start_date: date,
        end_date: date,
    ) -> list[DayAvailability]:
        try:
            payload = await self._request(
                'GET',
                '/dashboard/appointments/availability',
                params={
                    'clinic_id': clinic_id,
                    'doctor_id': doctor_id,
                    'start_date': date_to_api(start_date),
                    'end_date': date_to_api(end_date),
                },
            )
            return decode_availability(payload)
        except (TransportError, UnexpectedResponseError) as exc:
            raise AvailabilityUnavailableError('Unable to fetch availability for this date.') from exc

    async def list_appointments(
        self,
        doctor_id: int | None = None,
        clinic_id: int | None = None,
        status: str | None = None,
        on_date: date | None = None,
    ) -> list[Appointment]:
        payload = await self._request(
            'GET',
            '/dashboard/appointments',
            params={
                'doctor_id': doctor_id,
                'clinic_id': clinic_id,
                'status': status,
                'date': date_to_api(on_date) if on_date else None,
            },
        )
        return decode_appointments(payload)

    async def list_patient_appointments(self, patient_id: int) -> list[Appointment]:
        payload = await self._request('GET', f'/dashboard/appointments/patient/{patient_id}')
        return decode_appointments(payload)

    async def book_appointment(self, body: dict) -> Appointment | None:
        payload = await self._request('POST', '/dashboard/appointments/book', json=body, booking=True)
        return self._maybe_appointment(payload)

    async def reschedule_appointment(self, body: dict) -> Appointment | None:
        payload = await self._request('POST', '/dashboard/appointments/reschedule', json=body, booking=True)
        return self._maybe_appointment(payload)

    async def cancel_appointment(self, body: dict) -> None:
        await self._request('POST', '/dashboard/appointments/cancel', json=body)

    @staticmethod
    def _maybe_appointment(payload) -> Appointment | None:
        # Some deployments answer with only {"message": ...}.
        if not isinstance(payload, dict):
            return None
        body = unwrap_object(payload)
        if 'appointment_time' not in body and not isinstance(body.get('appointment'), dict):
            return None
        return decode_appointment(payload)
