from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_booking_policy, get_current_user_id, get_request_context, get_session
from ..domain.errors import DomainError
from ..domain.services import BookingPolicy, RequestContext
from ..infrastructure.repositories import (
    SqlAlchemyBoatRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemySlipRepository,
)
from ..models import ReservationStatus
from ..schemas import (
    ReservationBoatChange,
    ReservationCancel,
    ReservationConfirmation,
    ReservationCreate,
    ReservationRead,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.storage import transaction
from .availability import server_today
from .errors import to_http_exception

router = APIRouter(prefix="", tags=["reservations"], dependencies=[Depends(get_current_user_id)])


def _extract_version(if_match: Optional[str], payload: Optional[ReservationCancel | ReservationBoatChange]) -> Optional[int]:
    """If-Match wins over the body; no version at all skips the optimistic check."""
    if if_match is not None:
        raw = if_match.strip()
        if raw.startswith("W/"):
            raw = raw[2:]
        raw = raw.strip('"')
        try:
            value = int(raw)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid If-Match header") from exc
    elif payload is not None and payload.version is not None:
        value = payload.version
    else:
        return None
    if value < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version must be >= 1")
    return value


def _audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.post("/reservations", response_model=ReservationConfirmation, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
    today: date = Depends(server_today),
) -> ReservationConfirmation:
    slip_repo = SqlAlchemySlipRepository(session)
    boat_repo = SqlAlchemyBoatRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with transaction(session, "reservation allocation"):
            confirmed = await reservation_usecase.confirm_reservation(
                slip_repo,
                boat_repo,
                res_repo,
                ctx=ctx,
                start=payload.start_date,
                end=payload.end_date,
                slip_id=payload.slip_id,
                boat_id=payload.boat_id,
                boat_draft=payload.boat_draft(),
                today=today,
                policy=policy,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    reservation = confirmed.reservation
    try:
        if confirmed.boat_created:
            emit_audit_log(
                action="boat.created",
                initiator="user",
                user_id=ctx.user_id,
                boat_id=confirmed.boat.id,
                extra={"length_ft": confirmed.boat.length_ft},
            )
        emit_audit_log(
            action="reservation.created",
            initiator="user",
            user_id=ctx.user_id,
            reservation_id=reservation.id,
            confirmation_code=reservation.confirmation_code,
            slip_id=reservation.slip_id,
            boat_id=reservation.boat_id,
            status_from=None,
            status_to=reservation.status,
            version=reservation.version,
            extra={
                "start_date": reservation.start_date,
                "end_date": reservation.end_date,
                "total_cost": reservation.total_cost,
            },
        )
    except RuntimeError as exc:
        raise _audit_failure() from exc

    return ReservationConfirmation.from_confirmed(confirmed)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_user_reservations(
            res_repo, ctx=ctx, timeout=policy.storage_timeout_seconds
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [ReservationRead.from_db(reservation=res, slip=slip, boat=boat) for res, slip, boat in rows]


@router.get("/me/reservations/by-code/{confirmation_code}", response_model=ReservationRead)
async def find_my_reservation_by_code(
    confirmation_code: str = Path(..., min_length=4, max_length=16),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation, slip, boat = await reservation_usecase.find_reservation_by_code(
            res_repo, ctx=ctx, confirmation_code=confirmation_code, timeout=policy.storage_timeout_seconds
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return ReservationRead.from_db(reservation=reservation, slip=slip, boat=boat)


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation, slip, boat = await reservation_usecase.get_user_reservation(
            res_repo, ctx=ctx, reservation_id=reservation_id, timeout=policy.storage_timeout_seconds
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return ReservationRead.from_db(reservation=reservation, slip=slip, boat=boat)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationCancel] = Body(default=None),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> ReservationRead:
    version = _extract_version(if_match, payload)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with transaction(session, "reservation cancel"):
            updated, slip, boat, previous = await reservation_usecase.cancel_reservation(
                res_repo,
                ctx=ctx,
                reservation_id=reservation_id,
                version=version,
                timeout=policy.storage_timeout_seconds,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    if previous != ReservationStatus.CANCELED:
        try:
            emit_audit_log(
                action="reservation.canceled",
                initiator="user",
                user_id=ctx.user_id,
                reservation_id=updated.id,
                confirmation_code=updated.confirmation_code,
                slip_id=updated.slip_id,
                boat_id=updated.boat_id,
                status_from=previous,
                status_to=updated.status,
                version=updated.version,
            )
        except RuntimeError as exc:
            raise _audit_failure() from exc
    return ReservationRead.from_db(reservation=updated, slip=slip, boat=boat)


@router.post("/me/reservations/{reservation_id}/boat", response_model=ReservationRead)
async def change_reservation_boat(
    payload: ReservationBoatChange,
    reservation_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> ReservationRead:
    version = _extract_version(if_match, payload)
    boat_repo = SqlAlchemyBoatRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with transaction(session, "reservation boat change"):
            updated, slip, boat, previous_boat_id = await reservation_usecase.change_reservation_boat(
                boat_repo,
                res_repo,
                ctx=ctx,
                reservation_id=reservation_id,
                boat_id=payload.boat_id,
                version=version,
                policy=policy,
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    if previous_boat_id != boat.id:
        try:
            emit_audit_log(
                action="reservation.boat_changed",
                initiator="user",
                user_id=ctx.user_id,
                reservation_id=updated.id,
                confirmation_code=updated.confirmation_code,
                slip_id=updated.slip_id,
                boat_id=boat.id,
                status_from=updated.status,
                status_to=updated.status,
                version=updated.version,
                extra={"boat_id_from": previous_boat_id, "total_cost": updated.total_cost},
            )
        except RuntimeError as exc:
            raise _audit_failure() from exc
    return ReservationRead.from_db(reservation=updated, slip=slip, boat=boat)
