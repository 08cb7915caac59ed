from datetime import date
from decimal import Decimal
from typing import Any, cast

import pytest
from fastapi import HTTPException
from marina.domain.errors import DataStoreUnavailableError, SlipNoLongerAvailableError
from marina.domain.pricing import calculate_cost
from marina.domain.services import BookingPolicy, RequestContext
from marina.models import Boat, Reservation, ReservationStatus, Slip
from marina.routers import reservations as router
from marina.schemas import BoatCreate, ReservationBoatChange, ReservationCancel, ReservationCreate
from marina.usecases.reservations import ConfirmedReservation
from sqlalchemy.ext.asyncio import AsyncSession

CTX = RequestContext(user_id=7)
POLICY = BookingPolicy()
TODAY = date(2026, 2, 1)


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _slip() -> Slip:
    return Slip(id=1, size_ft=40, location_code="B-01", is_available=True)


def _boat(boat_id: int = 5, length_ft: int = 34) -> Boat:
    return Boat(id=boat_id, user_id=CTX.user_id, name="Sea Breeze", length_ft=length_ft)


def _reservation(status: ReservationStatus = ReservationStatus.CONFIRMED, boat_id: int = 5) -> Reservation:
    return Reservation(
        id=11,
        confirmation_code="9F03A1C4",
        user_id=CTX.user_id,
        boat_id=boat_id,
        slip_id=1,
        start_date=date(2026, 3, 1),
        end_date=date(2026, 4, 1),
        months=1,
        total_cost=Decimal("367.50"),
        status=status,
        version=1,
    )


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "SqlAlchemySlipRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyBoatRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]


def _payload(**overrides: Any) -> ReservationCreate:
    fields: dict[str, Any] = {"start_date": "2026-03-01", "end_date": "2026-04-01", "slip_id": 1, "boat_id": 5}
    fields.update(overrides)
    return ReservationCreate(**fields)


@pytest.mark.asyncio
async def test_create_reservation_emits_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation, slip, boat = _reservation(), _slip(), _boat()
    seen: dict[str, Any] = {}

    async def fake_confirm(*args: object, **kwargs: Any) -> ConfirmedReservation:
        seen.update(kwargs)
        return ConfirmedReservation(
            reservation=reservation, slip=slip, boat=boat, cost=calculate_cost(34, 1), boat_created=False
        )

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "confirm_reservation", fake_confirm)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.create_reservation(
        payload=_payload(),
        session=cast(AsyncSession, DummySession()),
        ctx=CTX,
        policy=POLICY,
        today=TODAY,
    )

    assert result.confirmation_code == "9F03A1C4"
    assert result.cost.total == Decimal("367.50")
    assert result.boat_created is False
    assert seen["start"] == "2026-03-01" and seen["today"] == TODAY
    assert [c["action"] for c in calls] == ["reservation.created"]
    assert calls[0]["reservation_id"] == reservation.id
    assert calls[0]["status_to"] == ReservationStatus.CONFIRMED


@pytest.mark.asyncio
async def test_create_with_inline_boat_audits_boat_too(monkeypatch: pytest.MonkeyPatch) -> None:
    new_boat = _boat(boat_id=31, length_ft=45)
    reservation = _reservation(boat_id=new_boat.id)

    async def fake_confirm(*args: object, **kwargs: Any) -> ConfirmedReservation:
        assert kwargs["boat_id"] is None
        assert kwargs["boat_draft"].length_ft == 45
        return ConfirmedReservation(
            reservation=reservation, slip=_slip(), boat=new_boat, cost=calculate_cost(45, 1), boat_created=True
        )

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "confirm_reservation", fake_confirm)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.create_reservation(
        payload=_payload(boat_id=None, new_boat=BoatCreate(name="Osprey", length_ft=45)),
        session=cast(AsyncSession, DummySession()),
        ctx=CTX,
        policy=POLICY,
        today=TODAY,
    )
    assert result.boat_created is True
    assert [c["action"] for c in calls] == ["boat.created", "reservation.created"]


@pytest.mark.asyncio
async def test_create_conflict_maps_to_409(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_confirm(*args: object, **kwargs: object) -> ConfirmedReservation:
        raise SlipNoLongerAvailableError("slip is no longer available for these dates")

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "confirm_reservation", fake_confirm)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(),
            session=cast(AsyncSession, DummySession()),
            ctx=CTX,
            policy=POLICY,
            today=TODAY,
        )
    assert excinfo.value.status_code == 409
    assert cast(dict, excinfo.value.detail)["code"] == "slip_no_longer_available"
    assert calls == []


@pytest.mark.asyncio
async def test_list_storage_failure_maps_to_503(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[Any]:
        raise DataStoreUnavailableError("reservation listing failed")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "list_user_reservations", fake_list)  # type: ignore[attr-defined]

    with pytest.raises(HTTPException) as excinfo:
        await router.list_my_reservations(session=cast(AsyncSession, DummySession()), ctx=CTX, policy=POLICY)
    assert excinfo.value.status_code == 503
    assert excinfo.value.headers == {"Retry-After": "5"}


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(status=ReservationStatus.CANCELED)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, Slip, Boat, ReservationStatus]:
        return reservation, _slip(), _boat(), ReservationStatus.CONFIRMED

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=reservation.id,
            payload=ReservationCancel(version=1),
            if_match='"1"',
            session=cast(AsyncSession, DummySession()),
            ctx=CTX,
            policy=POLICY,
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_repeat_cancel_is_not_audited_again(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(status=ReservationStatus.CANCELED)
    seen: dict[str, Any] = {}

    async def fake_cancel(*args: object, **kwargs: Any) -> tuple[Reservation, Slip, Boat, ReservationStatus]:
        seen.update(kwargs)
        return reservation, _slip(), _boat(), ReservationStatus.CANCELED

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.cancel_reservation(
        reservation_id=reservation.id,
        payload=None,
        if_match=None,
        session=cast(AsyncSession, DummySession()),
        ctx=CTX,
        policy=POLICY,
    )
    assert result.status == ReservationStatus.CANCELED
    assert seen["version"] is None
    assert calls == []


@pytest.mark.asyncio
async def test_change_boat_emits_previous_boat(monkeypatch: pytest.MonkeyPatch) -> None:
    new_boat = _boat(boat_id=6, length_ft=40)
    reservation = _reservation(boat_id=new_boat.id)
    reservation.total_cost = Decimal("430.50")

    async def fake_change(*args: object, **kwargs: object) -> tuple[Reservation, Slip, Boat, int]:
        return reservation, _slip(), new_boat, 5

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.reservation_usecase, "change_reservation_boat", fake_change)  # type: ignore[attr-defined]
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.change_reservation_boat(
        payload=ReservationBoatChange(boat_id=6, version=1),
        reservation_id=reservation.id,
        if_match=None,
        session=cast(AsyncSession, DummySession()),
        ctx=CTX,
        policy=POLICY,
    )
    assert result.boat.boat_id == 6
    assert len(calls) == 1
    assert calls[0]["action"] == "reservation.boat_changed"
    assert calls[0]["extra"]["boat_id_from"] == 5
