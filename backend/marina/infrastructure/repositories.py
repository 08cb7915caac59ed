from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple, cast

from sqlalchemy import ColumnElement, Select, exists, not_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import BoatRepository, ReservationRepository, SlipRepository
from ..models import Boat, Reservation, ReservationStatus, Slip


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _overlaps(start: date, end: date) -> ColumnElement[bool]:
    """Inclusive overlap between a confirmed reservation and [start, end]."""
    return (Reservation.status == ReservationStatus.CONFIRMED) & not_(
        or_(Reservation.end_date < start, Reservation.start_date > end)
    )


class SqlAlchemySlipRepository(SlipRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update(self, slip_id: int) -> Slip | None:
        # Bumping lock_version takes the row write lock on MySQL/PostgreSQL and
        # the database write lock on SQLite, so concurrent allocators for the
        # same slip queue here until the holder commits or rolls back.
        result = await self.session.execute(
            update(Slip)
            .where(Slip.id == slip_id)
            .values(lock_version=Slip.lock_version + 1)
            .execution_options(synchronize_session=False)
        )
        if cast(Any, result).rowcount == 0:
            return None
        stmt = (
            select(Slip)
            .where(Slip.id == slip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        slip = await self.session.scalar(stmt)
        return slip if isinstance(slip, Slip) else None

    async def list_all(self) -> Sequence[Slip]:
        rows = await self.session.scalars(select(Slip).order_by(Slip.size_ft.desc(), Slip.id))
        return list(rows.all())

    async def list_available(self, start: date, end: date, min_size_ft: int) -> Sequence[Slip]:
        conflict = exists().where(Reservation.slip_id == Slip.id, _overlaps(start, end))
        stmt: Select[Tuple[Slip]] = (
            select(Slip)
            .where(
                Slip.size_ft >= min_size_ft,
                Slip.is_available.is_(True),
                ~conflict,
            )
            .order_by(Slip.size_ft.desc(), Slip.id)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def create(self, *, size_ft: int, location_code: str, is_available: bool = True) -> Slip:
        now = _utc_now_naive()
        slip = Slip(
            size_ft=size_ft,
            location_code=location_code,
            is_available=is_available,
            lock_version=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(slip)
        await self.session.flush()
        return slip


class SqlAlchemyBoatRepository(BoatRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, boat_id: int) -> Boat | None:
        return await self.session.get(Boat, boat_id)

    async def get_for_update(self, boat_id: int) -> Boat | None:
        result = await self.session.scalar(select(Boat).where(Boat.id == boat_id).with_for_update())
        return result if isinstance(result, Boat) else None

    async def create(self, *, user_id: int, name: str, length_ft: int) -> Boat:
        now = _utc_now_naive()
        boat = Boat(user_id=user_id, name=name, length_ft=length_ft, created_at=now, updated_at=now)
        self.session.add(boat)
        await self.session.flush()
        return boat

    async def list_by_user(self, user_id: int) -> Sequence[Boat]:
        rows = await self.session.scalars(select(Boat).where(Boat.user_id == user_id).order_by(Boat.id))
        return list(rows.all())


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _joined(self) -> Select[Tuple[Reservation, Slip, Boat]]:
        return (
            select(Reservation, Slip, Boat)
            .join(Slip, Reservation.slip_id == Slip.id)
            .join(Boat, Reservation.boat_id == Boat.id)
        )

    async def slip_has_overlap(self, slip_id: int, start: date, end: date) -> bool:
        stmt = select(Reservation.id).where(Reservation.slip_id == slip_id, _overlaps(start, end)).limit(1)
        return await self.session.scalar(stmt) is not None

    async def boat_has_overlap(
        self,
        boat_id: int,
        start: date,
        end: date,
        exclude_reservation_id: int | None = None,
    ) -> bool:
        stmt = select(Reservation.id).where(Reservation.boat_id == boat_id, _overlaps(start, end))
        if exclude_reservation_id is not None:
            stmt = stmt.where(Reservation.id != exclude_reservation_id)
        return await self.session.scalar(stmt.limit(1)) is not None

    async def code_exists(self, confirmation_code: str) -> bool:
        stmt = select(Reservation.id).where(Reservation.confirmation_code == confirmation_code)
        return await self.session.scalar(stmt) is not None

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
    ) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            confirmation_code=confirmation_code,
            user_id=user_id,
            boat_id=boat_id,
            slip_id=slip_id,
            start_date=start_date,
            end_date=end_date,
            months=months,
            total_cost=total_cost,
            status=status,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_by_user(self, user_id: int) -> List[Tuple[Reservation, Slip, Boat]]:
        stmt = self._joined().where(Reservation.user_id == user_id).order_by(Reservation.start_date.desc())
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Slip, Boat]], list(rows.all()))

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[Tuple[Reservation, Slip, Boat]]:
        stmt = self._joined().where(Reservation.id == reservation_id, Reservation.user_id == user_id)
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Reservation, Slip, Boat]], row)

    async def get_by_code_for_user(
        self, confirmation_code: str, user_id: int
    ) -> Optional[Tuple[Reservation, Slip, Boat]]:
        stmt = self._joined().where(
            Reservation.confirmation_code == confirmation_code,
            Reservation.user_id == user_id,
        )
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Reservation, Slip, Boat]], row)

    async def get_for_user_for_update(
        self, reservation_id: int, user_id: int
    ) -> Optional[Tuple[Reservation, Slip, Boat]]:
        stmt = (
            self._joined()
            .where(Reservation.id == reservation_id, Reservation.user_id == user_id)
            .with_for_update(of=Reservation)
        )
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Reservation, Slip, Boat]], row)

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def complete_ended_before(self, cutoff: date) -> int:
        result = await self.session.execute(
            update(Reservation)
            .where(
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.end_date < cutoff,
            )
            .values(
                status=ReservationStatus.COMPLETED,
                version=Reservation.version + 1,
                updated_at=_utc_now_naive(),
            )
            .execution_options(synchronize_session=False)
        )
        return int(cast(Any, result).rowcount or 0)
