from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_calendar_cache, get_session
from ..domain.errors import ConfigError
from ..infrastructure.calendar_cache import CalendarCache
from ..infrastructure.repositories import SqlAlchemyFacilityConfigRepository
from ..schemas import FacilityConfigDocument, OverrideIn
from ..usecases import settings as settings_usecase
from .errors import http_error

router = APIRouter(prefix="/settings", tags=["settings"])


def _rejected(exc: ConfigError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.as_detail())


@router.get("/facility", response_model=FacilityConfigDocument)
async def get_facility_config(session: AsyncSession = Depends(get_session)) -> FacilityConfigDocument:
    repo = SqlAlchemyFacilityConfigRepository(session)
    try:
        return await settings_usecase.load_facility_config(repo)
    except ConfigError as exc:
        raise http_error(exc) from exc


@router.put("/facility", response_model=FacilityConfigDocument)
async def replace_facility_config(
    payload: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
    cache: CalendarCache = Depends(get_calendar_cache),
) -> FacilityConfigDocument:
    repo = SqlAlchemyFacilityConfigRepository(session)
    async with session.begin():
        try:
            document = await settings_usecase.replace_facility_config(repo, data=payload)
        except ConfigError as exc:
            raise _rejected(exc) from exc
    cache.invalidate()
    return document


@router.put("/facility/overrides/{day}", response_model=FacilityConfigDocument)
async def set_date_override(
    hours: OverrideIn,
    day: date = Path(...),
    session: AsyncSession = Depends(get_session),
    cache: CalendarCache = Depends(get_calendar_cache),
) -> FacilityConfigDocument:
    repo = SqlAlchemyFacilityConfigRepository(session)
    async with session.begin():
        try:
            document = await settings_usecase.set_date_override(repo, day=day, hours=hours)
        except ConfigError as exc:
            raise _rejected(exc) from exc
    cache.invalidate()
    return document


@router.delete("/facility/overrides/{day}", response_model=FacilityConfigDocument)
async def remove_date_override(
    day: date = Path(...),
    session: AsyncSession = Depends(get_session),
    cache: CalendarCache = Depends(get_calendar_cache),
) -> FacilityConfigDocument:
    repo = SqlAlchemyFacilityConfigRepository(session)
    async with session.begin():
        try:
            document = await settings_usecase.remove_date_override(repo, day=day)
        except ConfigError as exc:
            raise _rejected(exc) from exc
    cache.invalidate()
    return document
