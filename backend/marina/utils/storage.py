from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DataStoreUnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_guard(operation: str, *, timeout: float | None = None) -> AsyncIterator[None]:
    """
    Turn storage failures and timeouts inside the block into
    DataStoreUnavailableError. Domain errors pass through untouched.
    """
    try:
        async with asyncio.timeout(timeout):
            yield
    except TimeoutError as exc:
        logger.warning("%s timed out after %ss", operation, timeout)
        raise DataStoreUnavailableError(f"{operation} timed out") from exc
    except SQLAlchemyError as exc:
        logger.exception("%s failed", operation)
        raise DataStoreUnavailableError(f"{operation} failed") from exc


@asynccontextmanager
async def transaction(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """`session.begin()` whose commit failures also surface as DataStoreUnavailableError."""
    async with storage_guard(operation):
        async with session.begin():
            yield session
