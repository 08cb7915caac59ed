class DomainError(Exception):
    """Base class for every error raised by the reservation core."""


class ReservationValidationError(DomainError):
    """Rejected request; the message is safe to show to the user."""


class InvalidDateRangeError(ReservationValidationError):
    pass


class PastStartDateError(ReservationValidationError):
    pass


class StayTooShortError(ReservationValidationError):
    pass


class SlipTooSmallError(ReservationValidationError):
    pass


class InvalidInputError(ReservationValidationError):
    pass


class NotFoundError(DomainError):
    pass


class BoatNotFoundError(NotFoundError):
    pass


class SlipNotFoundError(NotFoundError):
    pass


class ReservationNotFoundError(NotFoundError):
    pass


class SlipNoLongerAvailableError(DomainError):
    """The chosen slip was taken (or withdrawn) before the claim committed."""


class BoatAlreadyReservedError(DomainError):
    pass


class ReservationNotModifiableError(DomainError):
    pass


class VersionConflictError(DomainError):
    pass


class DataStoreUnavailableError(DomainError):
    """Storage failed or timed out; nothing can be concluded about availability."""
