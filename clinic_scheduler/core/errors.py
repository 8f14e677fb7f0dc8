"""Error taxonomy for the scheduling core.

Every failure the core can report is a ``SchedulingError``. Callers decide how
to render it; nothing here retries.
"""

HTTP_ERROR_MESSAGES = {
    400: 'Invalid request. Please check your input and try again.',
    401: 'Your session has expired. Please log in again.',
    403: "You don't have permission to perform this action.",
    404: 'The requested resource was not found.',
    409: 'This record already exists.',
    422: 'Please check your input and try again.',
    429: 'Too many attempts. Please wait a moment and try again.',
    500: 'Something went wrong. Please try again later.',
    502: 'Server is temporarily unavailable. Please try again later.',
    503: 'Server is temporarily unavailable. Please try again later.',
    504: 'Server took too long to respond. Please try again later.',
}

DATA_ERROR_MESSAGES = {
    400: 'Invalid data provided. Please check your input.',
    401: 'Your session has expired. Please log in again.',
    403: "You don't have permission to access this data.",
    404: 'The requested data was not found.',
    409: 'A record with this information already exists.',
    422: 'Some required fields are missing or invalid.',
}

DEFAULT_MESSAGES = {
    'general': 'Something went wrong. Please try again later.',
    'data': 'Failed to load data. Please try again.',
}

NETWORK_ERROR_MESSAGE = 'Network error. Please check your internet connection and try again.'


class SchedulingError(Exception):
    """Base class for every error the scheduling core reports."""

    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BookingValidationError(SchedulingError):
    """Input rejected locally; never sent to the server."""


class TransportError(SchedulingError):
    """The remote API could not be reached or answered with a server error."""

    retryable = True


class AvailabilityUnavailableError(TransportError):
    """Availability could not be fetched. Not the same as a day with no slots."""


class ApiError(SchedulingError):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ApiError):
    """401/403 from the remote API. Handled by the auth layer, not here."""


class SlotConflictError(ApiError):
    """The chosen slot was taken between fetching availability and submitting."""


class UnexpectedResponseError(SchedulingError):
    """The API answered with a payload shape the decoder does not know."""


class InvalidTransitionError(SchedulingError):
    pass


class OperationInProgressError(SchedulingError):
    """A mutating call for the same appointment is already in flight."""


def friendly_message(error: Exception, context: str = 'general') -> str:
    if isinstance(error, AvailabilityUnavailableError):
        return error.message
    if isinstance(error, TransportError):
        return NETWORK_ERROR_MESSAGE

    if isinstance(error, ApiError):
        context_messages = DATA_ERROR_MESSAGES if context == 'data' else HTTP_ERROR_MESSAGES
        server_message = error.message.strip()
        if (
            server_message
            and 'http' not in server_message.lower()
            and 'internal' not in server_message.lower()
            and len(server_message) < 200
            and error.status_code < 500
        ):
            return server_message
        if error.status_code in context_messages:
            return context_messages[error.status_code]
        if error.status_code in HTTP_ERROR_MESSAGES:
            return HTTP_ERROR_MESSAGES[error.status_code]

    if isinstance(error, SchedulingError) and error.message:
        return error.message

    return DEFAULT_MESSAGES.get(context, DEFAULT_MESSAGES['general'])
