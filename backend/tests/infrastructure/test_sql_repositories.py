import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import AsyncIterator

import pytest
from marina.domain.errors import SlipNoLongerAvailableError
from marina.domain.services import RequestContext
from marina.infrastructure.repositories import (
    SqlAlchemyBoatRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemySlipRepository,
)
from marina.models import Base, Boat, Reservation, ReservationStatus, Slip, User
from marina.usecases.reservations import ConfirmedReservation, confirm_reservation
from marina.utils.storage import transaction
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

TODAY = date(2026, 2, 1)
MARCH = (date(2026, 3, 1), date(2026, 4, 1))
STAMP = datetime(2026, 1, 15, 12, 0)


@asynccontextmanager
async def marina_db(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'marina.db'}",
        connect_args={"timeout": 30},
    )
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, expire_on_commit=False)
        await _seed(factory)
        yield factory
    finally:
        await engine.dispose()


async def _seed(factory: async_sessionmaker[AsyncSession]) -> None:
    async with factory() as session, session.begin():
        for user_id in (1, 2):
            session.add(
                User(
                    id=user_id,
                    email=f"skipper{user_id}@example.com",
                    first_name="Skipper",
                    last_name=str(user_id),
                    password_hash="x",
                    created_at=STAMP,
                    updated_at=STAMP,
                )
            )
        await session.flush()
        session.add_all(
            [
                Boat(id=1, user_id=1, name="Sea Breeze", length_ft=34, created_at=STAMP, updated_at=STAMP),
                Boat(id=2, user_id=2, name="Osprey", length_ft=30, created_at=STAMP, updated_at=STAMP),
            ]
        )
        for slip_id, size_ft, code, available in [
            (1, 40, "B-01", True),
            (2, 50, "C-01", True),
            (3, 40, "B-02", True),
            (4, 26, "A-01", True),
            (5, 50, "C-02", False),
        ]:
            session.add(
                Slip(
                    id=slip_id,
                    size_ft=size_ft,
                    location_code=code,
                    is_available=available,
                    lock_version=0,
                    created_at=STAMP,
                    updated_at=STAMP,
                )
            )


async def _add_reservation(
    factory: async_sessionmaker[AsyncSession],
    *,
    slip_id: int,
    start: date,
    end: date,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
    boat_id: int = 1,
    code: str = "0000AAAA",
) -> None:
    async with factory() as session, session.begin():
        session.add(
            Reservation(
                confirmation_code=code,
                user_id=boat_id,
                boat_id=boat_id,
                slip_id=slip_id,
                start_date=start,
                end_date=end,
                months=1,
                total_cost=Decimal("367.50"),
                status=status,
                version=1,
                created_at=STAMP,
                updated_at=STAMP,
            )
        )


async def _available_ids(factory: async_sessionmaker[AsyncSession], min_size_ft: int = 40) -> list[int]:
    async with factory() as session:
        slips = await SqlAlchemySlipRepository(session).list_available(MARCH[0], MARCH[1], min_size_ft)
        return [slip.id for slip in slips]


@pytest.mark.asyncio
async def test_available_slips_largest_first_then_by_id(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        assert await _available_ids(factory) == [2, 1, 3]
        assert await _available_ids(factory, min_size_ft=26) == [2, 1, 3, 4]


@pytest.mark.asyncio
async def test_withdrawn_slip_is_never_listed(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        assert 5 not in await _available_ids(factory, min_size_ft=50)
        assert await _available_ids(factory, min_size_ft=50) == [2]


@pytest.mark.asyncio
async def test_canceled_stay_does_not_block(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        await _add_reservation(factory, slip_id=1, start=MARCH[0], end=MARCH[1], status=ReservationStatus.CANCELED)
        assert await _available_ids(factory) == [2, 1, 3]
        async with factory() as session:
            assert not await SqlAlchemyReservationRepository(session).slip_has_overlap(1, *MARCH)


@pytest.mark.asyncio
async def test_stay_ending_on_requested_start_blocks(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        await _add_reservation(factory, slip_id=3, start=date(2026, 2, 1), end=MARCH[0])
        await _add_reservation(factory, slip_id=1, start=date(2026, 1, 20), end=date(2026, 2, 28), code="0000BBBB")
        assert await _available_ids(factory) == [2, 1]
        async with factory() as session:
            repo = SqlAlchemyReservationRepository(session)
            assert await repo.slip_has_overlap(3, *MARCH)
            assert not await repo.slip_has_overlap(1, *MARCH)
            assert await repo.boat_has_overlap(1, *MARCH)


@pytest.mark.asyncio
async def test_missing_slip_is_not_locked(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        async with factory() as session, session.begin():
            repo = SqlAlchemySlipRepository(session)
            assert await repo.get_for_update(99) is None
            slip = await repo.get_for_update(1)
            assert slip is not None and slip.lock_version == 1


async def _claim(factory: async_sessionmaker[AsyncSession], *, user_id: int, boat_id: int) -> ConfirmedReservation:
    async with factory() as session:
        async with transaction(session, "reservation allocation"):
            return await confirm_reservation(
                SqlAlchemySlipRepository(session),
                SqlAlchemyBoatRepository(session),
                SqlAlchemyReservationRepository(session),
                ctx=RequestContext(user_id=user_id),
                start=MARCH[0],
                end=MARCH[1],
                slip_id=1,
                boat_id=boat_id,
                today=TODAY,
            )


@pytest.mark.asyncio
async def test_concurrent_claims_commit_exactly_one_row(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        results = await asyncio.gather(
            _claim(factory, user_id=1, boat_id=1),
            _claim(factory, user_id=2, boat_id=2),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, ConfirmedReservation)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], SlipNoLongerAvailableError)
        assert successes[0].reservation.id is not None

        async with factory() as session:
            count = await session.scalar(
                select(func.count()).select_from(Reservation).where(Reservation.slip_id == 1)
            )
            slip = await session.get(Slip, 1)
        assert count == 1
        assert slip is not None and slip.lock_version == 1


@pytest.mark.asyncio
async def test_sweep_completes_only_finished_confirmed_stays(tmp_path: Path) -> None:
    async with marina_db(tmp_path) as factory:
        await _add_reservation(factory, slip_id=1, start=date(2026, 1, 1), end=date(2026, 1, 31))
        await _add_reservation(factory, slip_id=2, start=MARCH[0], end=MARCH[1], code="0000BBBB")
        async with factory() as session, session.begin():
            assert await SqlAlchemyReservationRepository(session).complete_ended_before(TODAY) == 1
        async with factory() as session:
            statuses = dict((await session.execute(select(Reservation.slip_id, Reservation.status))).all())
        assert statuses == {1: ReservationStatus.COMPLETED, 2: ReservationStatus.CONFIRMED}
