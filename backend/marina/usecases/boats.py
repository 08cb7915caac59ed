from dataclasses import dataclass
from typing import Sequence

from ..domain.errors import BoatNotFoundError, InvalidInputError
from ..domain.repositories import BoatRepository
from ..domain.services import RequestContext, validate_boat_length
from ..models import Boat

MAX_BOAT_NAME_LENGTH = 100


@dataclass(frozen=True)
class BoatDraft:
    """A boat typed into the reservation form but not saved yet."""

    name: str
    length_ft: int


def validate_draft(draft: BoatDraft) -> BoatDraft:
    name = draft.name.strip()
    if not name:
        raise InvalidInputError("boat name is required")
    if len(name) > MAX_BOAT_NAME_LENGTH:
        raise InvalidInputError(f"boat name must be at most {MAX_BOAT_NAME_LENGTH} characters")
    return BoatDraft(name=name, length_ft=validate_boat_length(draft.length_ft))


async def add_boat(boat_repo: BoatRepository, *, ctx: RequestContext, draft: BoatDraft) -> Boat:
    valid = validate_draft(draft)
    return await boat_repo.create(user_id=ctx.user_id, name=valid.name, length_ft=valid.length_ft)


async def list_boats(boat_repo: BoatRepository, *, ctx: RequestContext) -> Sequence[Boat]:
    return await boat_repo.list_by_user(ctx.user_id)


async def get_owned_boat(
    boat_repo: BoatRepository,
    *,
    ctx: RequestContext,
    boat_id: int,
    for_update: bool = False,
) -> Boat:
    boat = await (boat_repo.get_for_update(boat_id) if for_update else boat_repo.get(boat_id))
    # Someone else's boat is reported exactly like a missing one.
    if boat is None or boat.user_id != ctx.user_id:
        raise BoatNotFoundError("boat not found")
    return boat


def ensure_single_boat_choice(boat_id: int | None, draft: BoatDraft | None) -> None:
    if boat_id is None and draft is None:
        raise InvalidInputError("select a boat or add a new one")
    if boat_id is not None and draft is not None:
        raise InvalidInputError("select an existing boat or add a new one, not both")
