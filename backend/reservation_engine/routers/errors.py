from fastapi import HTTPException, status

from ..domain.errors import (
    BusyError,
    CapacityExceededError,
    ConfigError,
    InvalidRequestError,
    InvalidTransitionError,
    ReservationNotFoundError,
    SchedulingError,
    SlotUnavailableError,
)

_STATUS_BY_ERROR: list[tuple[type[SchedulingError], int]] = [
    (SlotUnavailableError, status.HTTP_404_NOT_FOUND),
    (ReservationNotFoundError, status.HTTP_404_NOT_FOUND),
    (CapacityExceededError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InvalidRequestError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (BusyError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def http_error(exc: SchedulingError) -> HTTPException:
    code = next(
        (code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST,
    )
    headers = {"Retry-After": "1"} if exc.retryable else None
    return HTTPException(status_code=code, detail=exc.as_detail(), headers=headers)
