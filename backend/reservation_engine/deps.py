from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.calendar import FacilityCalendar
from .infrastructure.calendar_cache import CalendarCache
from .infrastructure.locks import SlotLockRegistry
from .infrastructure.repositories import SqlAlchemyFacilityConfigRepository, SqlAlchemyReservationRepository
from .usecases import settings as settings_usecase
from .usecases.scheduling import SchedulingFacade


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


@asynccontextmanager
async def reservation_unit_of_work() -> AsyncIterator[SqlAlchemyReservationRepository]:
    async with async_session() as session:
        async with session.begin():
            yield SqlAlchemyReservationRepository(session)


async def _load_calendar() -> FacilityCalendar:
    async with async_session() as session:
        return await settings_usecase.load_calendar(SqlAlchemyFacilityConfigRepository(session))


@lru_cache
def get_calendar_cache() -> CalendarCache:
    return CalendarCache(_load_calendar, ttl_seconds=get_settings().calendar_cache_ttl_seconds)


@lru_cache
def get_facade() -> SchedulingFacade:
    settings = get_settings()
    return SchedulingFacade(
        calendar=get_calendar_cache().get,
        unit_of_work=reservation_unit_of_work,
        locks=SlotLockRegistry(timeout_seconds=settings.slot_lock_timeout_seconds),
        retry_attempts=settings.busy_retry_attempts,
        retry_backoff_seconds=settings.busy_retry_backoff_seconds,
    )
