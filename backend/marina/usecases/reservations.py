from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, cast

from ..domain.errors import (
    BoatAlreadyReservedError,
    DataStoreUnavailableError,
    ReservationNotFoundError,
    ReservationNotModifiableError,
    SlipNotFoundError,
    VersionConflictError,
)
from ..domain.pricing import CostBreakdown, billable_months, calculate_cost
from ..domain.repositories import BoatRepository, ReservationRepository, SlipRepository
from ..domain.services import (
    DEFAULT_POLICY,
    BookingPolicy,
    RequestContext,
    SlipSnapshot,
    ensure_slip_fits,
    validate_allocation,
    validate_stay,
)
from ..models import Boat, Reservation, ReservationStatus, Slip
from ..utils.confirmation import generate_confirmation_code, normalize_confirmation_code
from ..utils.storage import storage_guard
from .boats import BoatDraft, ensure_single_boat_choice, get_owned_boat, validate_draft

ReservationRow = tuple[Reservation, Slip, Boat]


@dataclass(frozen=True)
class ConfirmedReservation:
    reservation: Reservation
    slip: Slip
    boat: Boat
    cost: CostBreakdown
    boat_created: bool


async def confirm_reservation(
    slip_repo: SlipRepository,
    boat_repo: BoatRepository,
    res_repo: ReservationRepository,
    *,
    ctx: RequestContext,
    start: object,
    end: object,
    slip_id: int,
    boat_id: int | None = None,
    boat_draft: BoatDraft | None = None,
    today: date | None = None,
    policy: BookingPolicy = DEFAULT_POLICY,
    code_factory: Callable[[], str] = generate_confirmation_code,
) -> ConfirmedReservation:
    """
    Claim one slip for one boat. Must run inside a transaction owned by the
    caller: the slip row is locked before availability is re-checked, and
    any error raised here leaves nothing behind once the caller rolls back.
    """
    window = validate_stay(
        start,
        end,
        today=today or date.today(),
        minimum_stay_days=policy.minimum_stay_days,
    )
    ensure_single_boat_choice(boat_id, boat_draft)
    draft = validate_draft(boat_draft) if boat_draft is not None else None

    async with storage_guard("reservation allocation", timeout=policy.storage_timeout_seconds):
        slip = await slip_repo.get_for_update(slip_id)
        if slip is None:
            raise SlipNotFoundError("slip not found")

        existing: Boat | None = None
        if draft is None:
            existing = await get_owned_boat(boat_repo, ctx=ctx, boat_id=cast(int, boat_id), for_update=True)
            boat_length = existing.length_ft
        else:
            boat_length = draft.length_ft

        snapshot = SlipSnapshot(
            size_ft=slip.size_ft,
            is_available=slip.is_available,
            has_overlapping_reservation=await res_repo.slip_has_overlap(slip.id, window.start, window.end),
            boat_has_overlapping_reservation=(
                existing is not None and await res_repo.boat_has_overlap(existing.id, window.start, window.end)
            ),
        )
        validate_allocation(snapshot, boat_length_ft=boat_length)

        if draft is not None:
            boat = await boat_repo.create(user_id=ctx.user_id, name=draft.name, length_ft=draft.length_ft)
        else:
            boat = cast(Boat, existing)

        cost = calculate_cost(boat_length, billable_months(window.start, window.end), policy.rates)
        code = await _unique_confirmation_code(res_repo, code_factory, attempts=policy.confirmation_code_attempts)
        reservation = await res_repo.create(
            confirmation_code=code,
            user_id=ctx.user_id,
            boat_id=boat.id,
            slip_id=slip.id,
            start_date=window.start,
            end_date=window.end,
            months=cost.months,
            total_cost=cost.total,
            status=ReservationStatus.CONFIRMED,
        )
    return ConfirmedReservation(
        reservation=reservation,
        slip=slip,
        boat=boat,
        cost=cost,
        boat_created=draft is not None,
    )


async def _unique_confirmation_code(
    res_repo: ReservationRepository,
    code_factory: Callable[[], str],
    *,
    attempts: int,
) -> str:
    for _ in range(attempts):
        code = code_factory()
        if not await res_repo.code_exists(code):
            return code
    raise DataStoreUnavailableError("could not generate a unique confirmation code")


async def cancel_reservation(
    res_repo: ReservationRepository,
    *,
    ctx: RequestContext,
    reservation_id: int,
    version: int | None = None,
    timeout: float | None = None,
) -> tuple[Reservation, Slip, Boat, ReservationStatus]:
    """Returns the row plus the status it had before this call."""
    async with storage_guard("reservation cancel", timeout=timeout):
        row = await res_repo.get_for_user_for_update(reservation_id, ctx.user_id)
        if row is None:
            raise ReservationNotFoundError("reservation not found")
        reservation, slip, boat = row
        previous = reservation.status
        # Idempotent: already canceled returns as-is
        if previous == ReservationStatus.CANCELED:
            return reservation, slip, boat, previous
        if previous != ReservationStatus.CONFIRMED:
            raise ReservationNotModifiableError(f"a {previous} reservation cannot be canceled")
        _check_version(reservation, version)

        reservation.status = ReservationStatus.CANCELED
        _touch(reservation)
        updated = await res_repo.save(reservation)
    return updated, slip, boat, previous


async def change_reservation_boat(
    boat_repo: BoatRepository,
    res_repo: ReservationRepository,
    *,
    ctx: RequestContext,
    reservation_id: int,
    boat_id: int,
    version: int | None = None,
    policy: BookingPolicy = DEFAULT_POLICY,
) -> tuple[Reservation, Slip, Boat, int]:
    """
    Swap the boat on a confirmed reservation. Dates and slip never change
    here; the new boat must fit the slip and be free for the same stay.
    Returns the row plus the previous boat id.
    """
    async with storage_guard("reservation boat change", timeout=policy.storage_timeout_seconds):
        row = await res_repo.get_for_user_for_update(reservation_id, ctx.user_id)
        if row is None:
            raise ReservationNotFoundError("reservation not found")
        reservation, slip, current_boat = row
        if reservation.status != ReservationStatus.CONFIRMED:
            raise ReservationNotModifiableError(f"a {reservation.status} reservation cannot be edited")
        _check_version(reservation, version)
        if boat_id == current_boat.id:
            return reservation, slip, current_boat, current_boat.id

        boat = await get_owned_boat(boat_repo, ctx=ctx, boat_id=boat_id, for_update=True)
        ensure_slip_fits(boat.length_ft, slip.size_ft)
        if await res_repo.boat_has_overlap(
            boat.id,
            reservation.start_date,
            reservation.end_date,
            exclude_reservation_id=reservation.id,
        ):
            raise BoatAlreadyReservedError("boat already has a reservation overlapping these dates")

        cost = calculate_cost(boat.length_ft, reservation.months, policy.rates)
        reservation.boat_id = boat.id
        reservation.total_cost = cost.total
        _touch(reservation)
        updated = await res_repo.save(reservation)
    return updated, slip, boat, current_boat.id


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    ctx: RequestContext,
    timeout: float | None = None,
) -> list[ReservationRow]:
    async with storage_guard("reservation listing", timeout=timeout):
        return await res_repo.list_by_user(ctx.user_id)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    ctx: RequestContext,
    reservation_id: int,
    timeout: float | None = None,
) -> ReservationRow:
    async with storage_guard("reservation lookup", timeout=timeout):
        row = await res_repo.get_for_user(reservation_id, ctx.user_id)
    if row is None:
        raise ReservationNotFoundError("reservation not found")
    return row


async def find_reservation_by_code(
    res_repo: ReservationRepository,
    *,
    ctx: RequestContext,
    confirmation_code: str,
    timeout: float | None = None,
) -> ReservationRow:
    code = normalize_confirmation_code(confirmation_code)
    async with storage_guard("reservation lookup", timeout=timeout):
        row = await res_repo.get_by_code_for_user(code, ctx.user_id)
    if row is None:
        raise ReservationNotFoundError("no reservation matches this confirmation code")
    return row


async def complete_past_reservations(
    res_repo: ReservationRepository,
    *,
    today: date | None = None,
    timeout: float | None = None,
) -> int:
    """Mark confirmed stays that ended before today as completed."""
    async with storage_guard("reservation completion sweep", timeout=timeout):
        return await res_repo.complete_ended_before(today or date.today())


def _check_version(reservation: Reservation, version: int | None) -> None:
    if version is not None and reservation.version != version:
        raise VersionConflictError("version mismatch")


def _touch(reservation: Reservation) -> None:
    reservation.version += 1
    reservation.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
