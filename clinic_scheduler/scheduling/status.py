from enum import Enum


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    IN_PROGRESS = 'in progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    RESCHEDULED = 'rescheduled'
    NO_SHOW = 'no-show'
    FAILED = 'failed'
    UNKNOWN = 'unknown'


STATUS_ALIASES = {
    'canceled': AppointmentStatus.CANCELLED,
    'in_progress': AppointmentStatus.IN_PROGRESS,
    'in-progress': AppointmentStatus.IN_PROGRESS,
    'inprogress': AppointmentStatus.IN_PROGRESS,
    'no_show': AppointmentStatus.NO_SHOW,
    'no show': AppointmentStatus.NO_SHOW,
    'noshow': AppointmentStatus.NO_SHOW,
    'failure': AppointmentStatus.FAILED,
    'booked': AppointmentStatus.SCHEDULED,
    'confirmed': AppointmentStatus.SCHEDULED,
}

ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    },
    # in progress is the day-of-service sub-state of scheduled
    AppointmentStatus.IN_PROGRESS: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.RESCHEDULED: {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
        AppointmentStatus.NO_SHOW,
    },
}

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.FAILED,
})

STATUS_BUCKETS = {
    AppointmentStatus.COMPLETED: 'completed',
    AppointmentStatus.IN_PROGRESS: 'in-progress',
    AppointmentStatus.SCHEDULED: 'scheduled',
    AppointmentStatus.CANCELLED: 'cancelled',
    AppointmentStatus.NO_SHOW: 'no-show',
}
NEUTRAL_BUCKET = 'neutral'


def parse_status(raw: str | None) -> AppointmentStatus:
    """Map a status string from the API onto the closed set; unknown values are kept as UNKNOWN."""
    if raw is None:
        return AppointmentStatus.SCHEDULED

    normalized = raw.strip().lower()
    if not normalized:
        return AppointmentStatus.SCHEDULED
    if normalized in STATUS_ALIASES:
        return STATUS_ALIASES[normalized]
    try:
        return AppointmentStatus(normalized)
    except ValueError:
        return AppointmentStatus.UNKNOWN


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES

def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def frees_slot(status: AppointmentStatus) -> bool:
    return status == AppointmentStatus.CANCELLED


def display_bucket(status: AppointmentStatus) -> str:
    return STATUS_BUCKETS.get(status, NEUTRAL_BUCKET)
