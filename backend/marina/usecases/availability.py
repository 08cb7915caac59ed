from dataclasses import dataclass
from datetime import date
from typing import Sequence, cast

from ..domain.pricing import CostBreakdown, billable_months, calculate_cost
from ..domain.repositories import BoatRepository, SlipRepository
from ..domain.services import (
    DEFAULT_POLICY,
    BookingPolicy,
    RequestContext,
    StayWindow,
    ensure_slip_fits,
    required_slip_size,
    validate_slip_size_class,
    validate_stay,
)
from ..models import Slip
from ..utils.storage import storage_guard
from .boats import BoatDraft, ensure_single_boat_choice, get_owned_boat, validate_draft


@dataclass(frozen=True)
class AvailabilityResult:
    window: StayWindow
    boat_length_ft: int
    required_size_ft: int
    candidate_slips: Sequence[Slip]
    estimated_cost: CostBreakdown


async def check_availability(
    slip_repo: SlipRepository,
    boat_repo: BoatRepository,
    *,
    ctx: RequestContext,
    start: object,
    end: object,
    slip_size_ft: int,
    boat_id: int | None = None,
    boat_draft: BoatDraft | None = None,
    today: date | None = None,
    policy: BookingPolicy = DEFAULT_POLICY,
) -> AvailabilityResult:
    """
    List the slips that could take the boat for the whole stay.
    Read-only: calling it again at confirm time is safe, and the allocator
    repeats the slip-level check under a lock anyway.
    """
    window = validate_stay(
        start,
        end,
        today=today or date.today(),
        minimum_stay_days=policy.minimum_stay_days,
    )
    validate_slip_size_class(slip_size_ft, policy.slip_size_classes)
    ensure_single_boat_choice(boat_id, boat_draft)
    draft = validate_draft(boat_draft) if boat_draft is not None else None

    async with storage_guard("availability query", timeout=policy.storage_timeout_seconds):
        if draft is not None:
            boat_length = draft.length_ft
        else:
            boat = await get_owned_boat(boat_repo, ctx=ctx, boat_id=cast(int, boat_id))
            boat_length = boat.length_ft

        ensure_slip_fits(boat_length, slip_size_ft)
        min_size = required_slip_size(slip_size_ft, boat_length)
        slips = await slip_repo.list_available(window.start, window.end, min_size)

    return AvailabilityResult(
        window=window,
        boat_length_ft=boat_length,
        required_size_ft=min_size,
        candidate_slips=slips,
        estimated_cost=calculate_cost(boat_length, billable_months(window.start, window.end), policy.rates),
    )
