from typing import Iterable, Sequence

from ..domain.errors import InvalidInputError
from ..domain.repositories import SlipRepository
from ..domain.services import DEFAULT_SLIP_SIZE_CLASSES, validate_slip_size_class
from ..models import Slip
from ..utils.storage import storage_guard

# dock letter -> (size class, number of slips)
DEFAULT_DOCK_LAYOUT: dict[str, tuple[int, int]] = {
    "A": (26, 10),
    "B": (40, 8),
    "C": (50, 6),
}


def dock_location_codes(layout: dict[str, tuple[int, int]]) -> list[tuple[str, int]]:
    return [
        (f"{dock}-{number:02d}", size)
        for dock, (size, count) in sorted(layout.items())
        for number in range(1, count + 1)
    ]


async def list_slips(slip_repo: SlipRepository, *, timeout: float | None = None) -> Sequence[Slip]:
    async with storage_guard("slip listing", timeout=timeout):
        return await slip_repo.list_all()


async def create_slip(
    slip_repo: SlipRepository,
    *,
    size_ft: int,
    location_code: str,
    is_available: bool = True,
    size_classes: Iterable[int] = DEFAULT_SLIP_SIZE_CLASSES,
) -> Slip:
    code = location_code.strip().upper()
    if not code:
        raise InvalidInputError("location code is required")
    validate_slip_size_class(size_ft, size_classes)
    return await slip_repo.create(size_ft=size_ft, location_code=code, is_available=is_available)


async def seed_slips(
    slip_repo: SlipRepository,
    *,
    layout: dict[str, tuple[int, int]] = DEFAULT_DOCK_LAYOUT,
    size_classes: Iterable[int] = DEFAULT_SLIP_SIZE_CLASSES,
) -> list[Slip]:
    """Insert the dock layout when no slips exist yet; returns what was created."""
    if await slip_repo.list_all():
        return []
    classes = tuple(size_classes)
    return [
        await create_slip(slip_repo, size_ft=size, location_code=code, size_classes=classes)
        for code, size in dock_location_codes(layout)
    ]
