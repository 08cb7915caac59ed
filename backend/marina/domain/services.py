from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from .errors import (
    BoatAlreadyReservedError,
    InvalidDateRangeError,
    InvalidInputError,
    PastStartDateError,
    SlipNoLongerAvailableError,
    SlipTooSmallError,
    StayTooShortError,
)
from .pricing import DEFAULT_RATES, PricingRates

MIN_BOAT_LENGTH_FT = 1
MAX_BOAT_LENGTH_FT = 50
DEFAULT_MINIMUM_STAY_DAYS = 30
DEFAULT_SLIP_SIZE_CLASSES = (26, 40, 50)


@dataclass(frozen=True)
class RequestContext:
    user_id: int


@dataclass(frozen=True)
class BookingPolicy:
    minimum_stay_days: int = DEFAULT_MINIMUM_STAY_DAYS
    slip_size_classes: tuple[int, ...] = DEFAULT_SLIP_SIZE_CLASSES
    rates: PricingRates = DEFAULT_RATES
    confirmation_code_attempts: int = 5
    storage_timeout_seconds: float | None = None


DEFAULT_POLICY = BookingPolicy()


@dataclass(frozen=True)
class StayWindow:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days


@dataclass(frozen=True)
class SlipSnapshot:
    size_ft: int
    is_available: bool
    has_overlapping_reservation: bool
    boat_has_overlapping_reservation: bool


def parse_stay_date(value: object) -> date:
    # datetime is a date subclass but carries a clock time; stays are whole days
    if isinstance(value, datetime):
        raise InvalidDateRangeError("dates must be given as YYYY-MM-DD without a time")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateRangeError("dates must be given as YYYY-MM-DD")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidDateRangeError(f"invalid date: {value!r}") from exc


def validate_stay(
    start: object,
    end: object,
    *,
    today: date,
    minimum_stay_days: int = DEFAULT_MINIMUM_STAY_DAYS,
) -> StayWindow:
    """
    Pure validation of a requested stay.
    The start may not be before `today` and the stay must last at least
    `minimum_stay_days`; exactly the minimum is accepted.
    """
    start_date = parse_stay_date(start)
    end_date = parse_stay_date(end)
    if start_date < today:
        raise PastStartDateError("start date cannot be in the past")
    if (end_date - start_date).days < minimum_stay_days:
        raise StayTooShortError(f"reservations must be at least {minimum_stay_days} days long")
    return StayWindow(start=start_date, end=end_date)


def validate_boat_length(length_ft: int) -> int:
    if not MIN_BOAT_LENGTH_FT <= length_ft <= MAX_BOAT_LENGTH_FT:
        raise InvalidInputError(
            f"boat length must be between {MIN_BOAT_LENGTH_FT} and {MAX_BOAT_LENGTH_FT} ft"
        )
    return length_ft


def validate_slip_size_class(size_ft: int, size_classes: Iterable[int]) -> int:
    classes = sorted(size_classes)
    if size_ft not in classes:
        raise InvalidInputError(f"slip size must be one of {', '.join(str(c) for c in classes)} ft")
    return size_ft


def ensure_slip_fits(boat_length_ft: int, slip_size_ft: int) -> None:
    if slip_size_ft < boat_length_ft:
        raise SlipTooSmallError(
            f"slip size ({slip_size_ft} ft) is smaller than the boat ({boat_length_ft} ft)"
        )


def required_slip_size(size_class_ft: int, boat_length_ft: int) -> int:
    return max(size_class_ft, boat_length_ft)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive overlap: a stay ending the day another starts still conflicts."""
    return not (end_a < start_b or start_a > end_b)


def validate_allocation(snapshot: SlipSnapshot, *, boat_length_ft: int) -> None:
    """
    Checks run under the slip lock right before the insert.
    Size is checked first so an undersized slip is rejected whatever its dates.
    """
    ensure_slip_fits(boat_length_ft, snapshot.size_ft)
    if not snapshot.is_available or snapshot.has_overlapping_reservation:
        raise SlipNoLongerAvailableError("slip is no longer available for these dates")
    if snapshot.boat_has_overlapping_reservation:
        raise BoatAlreadyReservedError("boat already has a reservation overlapping these dates")
