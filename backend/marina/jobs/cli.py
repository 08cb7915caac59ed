import argparse
import asyncio
import logging
from datetime import date
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemySlipRepository
from ..usecases import reservations as reservation_usecase
from ..usecases import slips as slip_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.storage import transaction

logger = logging.getLogger(__name__)


async def init_db() -> None:
    from ..database import create_schema

    await create_schema()
    logger.info("schema created")


async def seed_slips(session_factory: async_sessionmaker[AsyncSession]) -> int:
    settings = get_settings()
    async with session_factory() as session:
        async with transaction(session, "slip seeding"):
            created = await slip_usecase.seed_slips(
                SqlAlchemySlipRepository(session),
                size_classes=settings.slip_size_classes,
            )
    if created:
        logger.info("seeded %d slips", len(created))
    else:
        logger.info("slips already present; nothing seeded")
    return len(created)


async def complete_reservations(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    today: date | None = None,
) -> int:
    run_date = today or date.today()
    async with session_factory() as session:
        async with transaction(session, "reservation completion sweep"):
            count = await reservation_usecase.complete_past_reservations(
                SqlAlchemyReservationRepository(session),
                today=run_date,
            )

    emit_audit_log(
        action="reservation.completed",
        initiator="system",
        user_id=None,
        status_from="confirmed",
        status_to="completed",
        extra={"count": count, "cutoff": run_date},
    )
    logger.info("marked %d reservations completed (ended before %s)", count, run_date)
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="marina-jobs", description="Marina maintenance jobs")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="create tables")
    sub.add_parser("seed-slips", help="insert the default dock layout into an empty slips table")
    complete = sub.add_parser("complete-reservations", help="mark ended stays as completed")
    complete.add_argument("--today", type=date.fromisoformat, default=None, help="override the run date (YYYY-MM-DD)")
    return parser


async def run(args: argparse.Namespace, session_factory: async_sessionmaker[AsyncSession] | None = None) -> int:
    if args.command == "init-db":
        await init_db()
        return 0

    if session_factory is None:
        from ..database import async_session

        session_factory = async_session

    if args.command == "seed-slips":
        await seed_slips(session_factory)
    elif args.command == "complete-reservations":
        await complete_reservations(session_factory, today=args.today)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except DomainError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
