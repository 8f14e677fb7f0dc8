"""Interaction state machine behind the schedule / reschedule dialogs.

    IDLE -> PICKING_DATE -> PICKING_SLOT -> SUBMITTING -> IDLE

Every public coroutine returns a ``WorkflowResult``; errors are reported, not
raised, so the UI layer only has to render them.
"""

import asyncio
import logging
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from clinic_scheduler.core import config
from clinic_scheduler.core.context import AppContext
from clinic_scheduler.core.errors import (
    BookingValidationError,
    InvalidTransitionError,
    SchedulingError,
    SlotConflictError,
    TransportError,
    friendly_message,
)
from clinic_scheduler.core.timeutils import parse_time
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling.booking import (
    AppointmentPartition,
    BookingService,
    CancelAppointmentRequest,
    CreateAppointmentRequest,
    RescheduleAppointmentRequest,
    build_request,
    ensure_not_in_past,
    ensure_status_change,
    partition_appointments,
)
from clinic_scheduler.scheduling.slots import SlotResult
from clinic_scheduler.scheduling.status import AppointmentStatus

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    IDLE = 'idle'
    PICKING_DATE = 'picking_date'
    PICKING_SLOT = 'picking_slot'
    SUBMITTING = 'submitting'


class WorkflowMode(str, Enum):
    BOOK = 'book'
    RESCHEDULE = 'reschedule'


TRANSITIONS = {
    WorkflowState.IDLE: {WorkflowState.PICKING_DATE},
    WorkflowState.PICKING_DATE: {WorkflowState.PICKING_SLOT, WorkflowState.IDLE},
    WorkflowState.PICKING_SLOT: {WorkflowState.PICKING_SLOT, WorkflowState.SUBMITTING, WorkflowState.IDLE},
    WorkflowState.SUBMITTING: {WorkflowState.IDLE, WorkflowState.PICKING_SLOT},
}


class WorkflowResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    message: str | None = None
    stale: bool = False
    retryable: bool = False
    error: SchedulingError | None = None

    @classmethod
    def success(cls, message: str | None = None) -> 'WorkflowResult':
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, error: SchedulingError) -> 'WorkflowResult':
        return cls(ok=False, message=friendly_message(error, 'data'), retryable=error.retryable, error=error)

    @classmethod
    def discarded(cls) -> 'WorkflowResult':
        return cls(ok=False, stale=True, message='Superseded by a newer request.')


class PatientRef(BaseModel):
    id: int
    phone_number: str


class BookingWorkflow:
    def __init__(
        self,
        context: AppContext,
        patient: PatientRef,
        appointments: list[Appointment] | None = None,
        service: BookingService | None = None,
        timeout: float | None = None,
    ):
        self.context = context
        self.patient = patient
        self.appointments: list[Appointment] = list(appointments or [])
        self.service = service or BookingService(context)
        self.timeout = timeout or config.WORKFLOW_TIMEOUT_SECONDS

        self.state = WorkflowState.IDLE
        self.mode: WorkflowMode | None = None
        self.appointment_id: int | None = None
        self.selected_date: date | None = None
        self.selected_slot: str | None = None
        self.slot_result: SlotResult | None = None
        self.available_slots: list[str] = []
        self.last_error: SchedulingError | None = None
        self._generation = 0

    @property
    def partition(self) -> AppointmentPartition:
        return partition_appointments(self.appointments, self.context.today())

    @property
    def upcoming(self) -> list[Appointment]:
        return self.partition.upcoming

    @property
    def past(self) -> list[Appointment]:
        return self.partition.past

    def _transition(self, target: WorkflowState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(f'Cannot move from {self.state.value} to {target.value}.')
        self.state = target

    def _clear_selection(self) -> None:
        self.selected_date = None
        self.selected_slot = None
        self.slot_result = None
        self.available_slots = []

    def _fail(self, error: SchedulingError) -> WorkflowResult:
        self.last_error = error
        return WorkflowResult.failure(error)

    async def _bounded(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError('The request timed out. Please try again.') from exc

    def open_schedule(self) -> WorkflowResult:
        return self._open(WorkflowMode.BOOK, None)

    def open_reschedule(self, appointment_id: int) -> WorkflowResult:
        return self._open(WorkflowMode.RESCHEDULE, appointment_id)

    def _open(self, mode: WorkflowMode, appointment_id: int | None) -> WorkflowResult:
        try:
            self._transition(WorkflowState.PICKING_DATE)
        except InvalidTransitionError as exc:
            return self._fail(exc)
        self.mode = mode
        self.appointment_id = appointment_id
        self.last_error = None
        self._clear_selection()
        return WorkflowResult.success()

    def close(self) -> WorkflowResult:
        if self.state == WorkflowState.IDLE:
            return WorkflowResult.success()
        if self.state == WorkflowState.SUBMITTING:
            return self._fail(InvalidTransitionError('Cannot close while an appointment is being saved.'))
        try:
            self._transition(WorkflowState.IDLE)
        except InvalidTransitionError as exc:
            return self._fail(exc)
        self._generation += 1
        self.mode = None
        self.appointment_id = None
        self._clear_selection()
        return WorkflowResult.success()

    async def select_date(self, target_date: date) -> WorkflowResult:
        if self.state == WorkflowState.SUBMITTING:
            return self._fail(InvalidTransitionError('Cannot change the date while an appointment is being saved.'))
        try:
            self._transition(WorkflowState.PICKING_SLOT)
        except InvalidTransitionError as exc:
            return self._fail(exc)

        self._generation += 1
        generation = self._generation
        self._clear_selection()
        self.selected_date = target_date

        try:
            result = await self._bounded(self.service.fetch_slots(target_date))
        except SchedulingError as exc:
            if generation != self._generation:
                return WorkflowResult.discarded()
            return self._fail(exc)

        if generation != self._generation:
            logger.warning('Discarding stale availability response for %s', target_date)
            return WorkflowResult.discarded()

        self.slot_result = result
        self.available_slots = list(result.slots)
        if result.is_closed or not result.slots:
            return WorkflowResult.success(result.reason or 'No available time slots for this date.')
        return WorkflowResult.success()

    def select_slot(self, slot: str) -> WorkflowResult:
        if self.state != WorkflowState.PICKING_SLOT:
            return self._fail(InvalidTransitionError('Choose a date before choosing a time slot.'))
        if slot not in self.available_slots:
            return self._fail(BookingValidationError('That time slot is not available. Please choose another.'))
        self.selected_slot = slot
        return WorkflowResult.success()

    async def submit(self) -> WorkflowResult:
        if self.state != WorkflowState.PICKING_SLOT:
            return self._fail(InvalidTransitionError(f'Cannot submit while {self.state.value}.'))

        try:
            request = self._build_request()
            ensure_not_in_past(request.date, request.slot, self.context)
            if isinstance(request, RescheduleAppointmentRequest):
                ensure_status_change(self._find(request.appointment_id), AppointmentStatus.RESCHEDULED)
        except SchedulingError as exc:
            return self._fail(exc)

        self._transition(WorkflowState.SUBMITTING)
        try:
            if isinstance(request, RescheduleAppointmentRequest):
                confirmed = await self._bounded(self.service.reschedule(request, self._find(request.appointment_id)))
            else:
                confirmed = await self._bounded(self.service.book(request))
        except SlotConflictError as exc:
            logger.warning('Slot %s on %s was taken before submission', request.slot, request.date)
            self._transition(WorkflowState.PICKING_SLOT)
            await self.select_date(request.date)
            return self._fail(exc)
        except SchedulingError as exc:
            self._transition(WorkflowState.PICKING_SLOT)
            return self._fail(exc)

        self._apply_confirmed(request, confirmed)
        mode = self.mode
        self._transition(WorkflowState.IDLE)
        self.mode = None
        self.appointment_id = None
        self._clear_selection()
        self.last_error = None

        await self.refresh_appointments()
        if mode == WorkflowMode.RESCHEDULE:
            return WorkflowResult.success('Appointment rescheduled successfully')
        return WorkflowResult.success('Appointment scheduled successfully')

    def _build_request(self) -> CreateAppointmentRequest:
        if self.selected_date is None or self.selected_slot is None:
            raise BookingValidationError('Please select a date and time slot.')

        fields = {
            'clinic_id': self.context.clinic_id,
            'doctor_id': self.context.doctor_id,
            'patient_id': self.patient.id,
            'date': self.selected_date,
            'slot': self.selected_slot,
            'phone': self.patient.phone_number,
        }
        if self.mode == WorkflowMode.RESCHEDULE:
            return build_request(RescheduleAppointmentRequest, appointment_id=self.appointment_id, **fields)
        return build_request(CreateAppointmentRequest, **fields)

    def _find(self, appointment_id: int | None) -> Appointment | None:
        for appointment in self.appointments:
            if appointment.id == appointment_id:
                return appointment
        return None

    def _apply_confirmed(self, request: CreateAppointmentRequest, confirmed: Appointment | None) -> None:
        new_time = datetime.combine(request.date, parse_time(request.slot))

        if isinstance(request, RescheduleAppointmentRequest):
            updated = []
            for appointment in self.appointments:
                if appointment.id == request.appointment_id:
                    appointment = confirmed or appointment.model_copy(update={'appointment_time': new_time})
                updated.append(appointment)
            self.appointments = updated
            return

        self.appointments.append(
            confirmed
            or Appointment(
                clinic_id=request.clinic_id,
                doctor_id=request.doctor_id,
                patient_id=request.patient_id,
                appointment_time=new_time,
                phone=request.phone,
            )
        )

    async def cancel(self, appointment_id: int) -> WorkflowResult:
        try:
            request = build_request(
                CancelAppointmentRequest,
                appointment_id=appointment_id,
                clinic_id=self.context.clinic_id,
                doctor_id=self.context.doctor_id,
                patient_id=self.patient.id,
                phone=self.patient.phone_number,
            )
            current = self._find(appointment_id)
            ensure_status_change(current, AppointmentStatus.CANCELLED)
            await self._bounded(self.service.cancel(request, current))
        except SchedulingError as exc:
            return self._fail(exc)

        self.appointments = [
            appointment.model_copy(update={'status': AppointmentStatus.CANCELLED.value})
            if appointment.id == appointment_id else appointment
            for appointment in self.appointments
        ]
        await self.refresh_appointments()
        return WorkflowResult.success('Appointment cancelled successfully')

    async def refresh_appointments(self) -> WorkflowResult:
        try:
            appointments = await self._bounded(self.context.api.list_patient_appointments(self.patient.id))
        except SchedulingError as exc:
            logger.warning('Could not refresh appointments for patient %s: %s', self.patient.id, exc)
            return self._fail(exc)
        self.appointments = appointments
        return WorkflowResult.success()
