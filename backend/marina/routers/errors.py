from fastapi import HTTPException, status

from ..domain.errors import (
    BoatAlreadyReservedError,
    BoatNotFoundError,
    DataStoreUnavailableError,
    DomainError,
    InvalidDateRangeError,
    InvalidInputError,
    PastStartDateError,
    ReservationNotFoundError,
    ReservationNotModifiableError,
    SlipNoLongerAvailableError,
    SlipNotFoundError,
    SlipTooSmallError,
    StayTooShortError,
    VersionConflictError,
)

RETRY_AFTER_SECONDS = "5"

_MAPPING: list[tuple[type[DomainError], int, str]] = [
    (InvalidDateRangeError, status.HTTP_400_BAD_REQUEST, "invalid_date_range"),
    (PastStartDateError, status.HTTP_400_BAD_REQUEST, "past_start_date"),
    (StayTooShortError, status.HTTP_400_BAD_REQUEST, "stay_too_short"),
    (SlipTooSmallError, status.HTTP_400_BAD_REQUEST, "slip_too_small"),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST, "invalid_input"),
    (BoatNotFoundError, status.HTTP_404_NOT_FOUND, "boat_not_found"),
    (SlipNotFoundError, status.HTTP_404_NOT_FOUND, "slip_not_found"),
    (ReservationNotFoundError, status.HTTP_404_NOT_FOUND, "reservation_not_found"),
    (SlipNoLongerAvailableError, status.HTTP_409_CONFLICT, "slip_no_longer_available"),
    (BoatAlreadyReservedError, status.HTTP_409_CONFLICT, "boat_already_reserved"),
    (ReservationNotModifiableError, status.HTTP_409_CONFLICT, "reservation_not_modifiable"),
    (VersionConflictError, status.HTTP_409_CONFLICT, "version_conflict"),
    (DataStoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "data_store_unavailable"),
]


def to_http_exception(exc: DomainError) -> HTTPException:
    for error_type, status_code, code in _MAPPING:
        if not isinstance(exc, error_type):
            continue
        headers = None
        if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
            headers = {"Retry-After": RETRY_AFTER_SECONDS}
        return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)}, headers=headers)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail={"code": "internal_error"})
