from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_booking_policy, get_current_user_id, get_request_context, get_session
from ..domain.errors import DomainError
from ..domain.services import BookingPolicy, RequestContext
from ..infrastructure.repositories import SqlAlchemyBoatRepository
from ..schemas import BoatCreate, BoatRead
from ..usecases import boats as boat_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.storage import storage_guard, transaction
from .errors import to_http_exception

router = APIRouter(prefix="/me/boats", tags=["boats"], dependencies=[Depends(get_current_user_id)])


@router.get("", response_model=List[BoatRead])
async def list_my_boats(
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> list[BoatRead]:
    boat_repo = SqlAlchemyBoatRepository(session)
    try:
        async with storage_guard("boat listing", timeout=policy.storage_timeout_seconds):
            boats = await boat_usecase.list_boats(boat_repo, ctx=ctx)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [BoatRead.from_db(boat=boat) for boat in boats]


@router.post("", response_model=BoatRead, status_code=status.HTTP_201_CREATED)
async def add_boat(
    payload: BoatCreate,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> BoatRead:
    boat_repo = SqlAlchemyBoatRepository(session)
    try:
        async with transaction(session, "boat creation"):
            boat = await boat_usecase.add_boat(boat_repo, ctx=ctx, draft=payload.to_draft())
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    try:
        emit_audit_log(
            action="boat.created",
            initiator="user",
            user_id=ctx.user_id,
            boat_id=boat.id,
            extra={"length_ft": boat.length_ft},
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc
    return BoatRead.from_db(boat=boat)
