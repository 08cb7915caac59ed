from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol, Sequence

from ..models import Boat, Reservation, ReservationStatus, Slip


class SlipRepository(Protocol):
    async def get_for_update(self, slip_id: int) -> Slip | None: ...

    async def list_all(self) -> Sequence[Slip]: ...

    async def list_available(self, start: date, end: date, min_size_ft: int) -> Sequence[Slip]: ...

    async def create(self, *, size_ft: int, location_code: str, is_available: bool = True) -> Slip: ...


class BoatRepository(Protocol):
    async def get(self, boat_id: int) -> Boat | None: ...

    async def get_for_update(self, boat_id: int) -> Boat | None: ...

    async def create(self, *, user_id: int, name: str, length_ft: int) -> Boat: ...

    async def list_by_user(self, user_id: int) -> Sequence[Boat]: ...


class ReservationRepository(Protocol):
    async def slip_has_overlap(self, slip_id: int, start: date, end: date) -> bool: ...

    async def boat_has_overlap(
        self,
        boat_id: int,
        start: date,
        end: date,
        exclude_reservation_id: int | None = None,
    ) -> bool: ...

    async def code_exists(self, confirmation_code: str) -> bool: ...

    async def create(
        self,
        *,
        confirmation_code: str,
        user_id: int,
        boat_id: int,
        slip_id: int,
        start_date: date,
        end_date: date,
        months: int,
        total_cost: Decimal,
        status: ReservationStatus,
    ) -> Reservation: ...

    async def list_by_user(self, user_id: int) -> list[tuple[Reservation, Slip, Boat]]: ...

    async def get_for_user(self, reservation_id: int, user_id: int) -> tuple[Reservation, Slip, Boat] | None: ...

    async def get_by_code_for_user(
        self, confirmation_code: str, user_id: int
    ) -> tuple[Reservation, Slip, Boat] | None: ...

    async def get_for_user_for_update(
        self, reservation_id: int, user_id: int
    ) -> tuple[Reservation, Slip, Boat] | None: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def complete_ended_before(self, cutoff: date) -> int: ...
