from datetime import date
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_booking_policy, get_current_user_id, get_request_context, get_session
from ..domain.errors import DomainError
from ..domain.services import BookingPolicy, RequestContext
from ..infrastructure.repositories import SqlAlchemyBoatRepository, SqlAlchemySlipRepository
from ..schemas import AvailabilityQuery, AvailabilityRead, CostRead, SlipRead
from ..usecases import availability as availability_usecase
from ..usecases import slips as slip_usecase
from .errors import to_http_exception

router = APIRouter(tags=["availability"], dependencies=[Depends(get_current_user_id)])


def server_today() -> date:
    return date.today()


@router.get("/slips", response_model=List[SlipRead])
async def list_slips(
    session: AsyncSession = Depends(get_session),
    policy: BookingPolicy = Depends(get_booking_policy),
) -> list[SlipRead]:
    slip_repo = SqlAlchemySlipRepository(session)
    try:
        slips = await slip_usecase.list_slips(slip_repo, timeout=policy.storage_timeout_seconds)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [SlipRead.from_db(slip=slip) for slip in slips]


@router.post("/availability", response_model=AvailabilityRead)
async def check_availability(
    payload: AvailabilityQuery,
    session: AsyncSession = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
    policy: BookingPolicy = Depends(get_booking_policy),
    today: date = Depends(server_today),
) -> AvailabilityRead:
    slip_repo = SqlAlchemySlipRepository(session)
    boat_repo = SqlAlchemyBoatRepository(session)
    try:
        result = await availability_usecase.check_availability(
            slip_repo,
            boat_repo,
            ctx=ctx,
            start=payload.start_date,
            end=payload.end_date,
            slip_size_ft=payload.slip_size_ft,
            boat_id=payload.boat_id,
            boat_draft=payload.boat_draft(),
            today=today,
            policy=policy,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return AvailabilityRead(
        start_date=result.window.start,
        end_date=result.window.end,
        required_size_ft=result.required_size_ft,
        candidate_slips=[SlipRead.from_db(slip=slip) for slip in result.candidate_slips],
        estimated_cost=CostRead.from_breakdown(result.estimated_cost),
    )
