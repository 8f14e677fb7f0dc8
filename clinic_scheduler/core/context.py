from datetime import date, datetime
from typing import Callable

from clinic_scheduler.api.client import ClinicApiClient
from clinic_scheduler.core.errors import BookingValidationError
from clinic_scheduler.core.timeutils import clinic_now


class AppContext:
    """Who is acting, against which clinic, and through which API client.

    Passed explicitly to every scheduling component instead of being read from
    ambient storage.
    """

    def __init__(
        self,
        api: ClinicApiClient,
        clinic_id: int | None,
        doctor_id: int | None = None,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.api = api
        self._clinic_id = clinic_id
        self._doctor_id = doctor_id
        self.clock = clock

    @property
    def clinic_id(self) -> int:
        if self._clinic_id is None:
            raise BookingValidationError('Clinic ID not found. Please log in again.')
        return self._clinic_id

    @property
    def doctor_id(self) -> int:
        if self._doctor_id is None:
            raise BookingValidationError('Doctor ID not found. Please log in again.')
        return self._doctor_id

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def for_doctor(self, doctor_id: int) -> 'AppContext':
        return AppContext(self.api, self._clinic_id, doctor_id, self.clock)
