import logging

from fastapi import HTTPException, status

from clinic_scheduler.core.errors import (
    ApiError,
    AuthenticationError,
    BookingValidationError,
    InvalidTransitionError,
    OperationInProgressError,
    SchedulingError,
    SlotConflictError,
    TransportError,
    UnexpectedResponseError,
    friendly_message,
)

logger = logging.getLogger(__name__)


def to_http_exception(exc: SchedulingError) -> HTTPException:
    detail = friendly_message(exc, 'data')

    if isinstance(exc, BookingValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=exc.status_code, detail=detail)
    if isinstance(exc, (SlotConflictError, OperationInProgressError, InvalidTransitionError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    if isinstance(exc, TransportError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
    if isinstance(exc, UnexpectedResponseError):
        logger.error('Clinic API returned an unexpected payload: %s', exc.message)
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
    if isinstance(exc, ApiError) and 400 <= exc.status_code < 500:
        return HTTPException(status_code=exc.status_code, detail=detail)

    logger.error('Unhandled scheduling error: %s', exc.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
