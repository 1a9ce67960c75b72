from datetime import date, time
from typing import List

from fastapi import APIRouter, Depends, Query

from ..deps import get_facade
from ..domain.errors import SchedulingError
from ..schemas import SlotAvailability
from ..usecases.scheduling import SchedulingFacade
from .errors import http_error

router = APIRouter(prefix="", tags=["slots"])


@router.get("/slots", response_model=List[SlotAvailability])
async def list_open_slots(
    slot_date: date = Query(..., description="Facility-local date (YYYY-MM-DD)"),
    include_full: bool = Query(default=False),
    facade: SchedulingFacade = Depends(get_facade),
) -> list[SlotAvailability]:
    try:
        slots = await facade.get_open_slots(slot_date, include_full=include_full)
    except SchedulingError as exc:
        raise http_error(exc) from exc
    return [
        SlotAvailability.from_candidate(slot.candidate, capacity=slot.capacity, remaining=slot.remaining)
        for slot in slots
    ]


@router.get("/slots/alternatives", response_model=List[SlotAvailability])
async def list_alternative_slots(
    slot_date: date = Query(..., description="Facility-local date (YYYY-MM-DD)"),
    slot_start: time = Query(..., description="Requested start (HH:MM)"),
    guests: int = Query(...),
    limit: int = Query(default=3, ge=1, le=20),
    facade: SchedulingFacade = Depends(get_facade),
) -> list[SlotAvailability]:
    try:
        slots = await facade.suggest_alternatives(slot_date, slot_start, guests, limit=limit)
    except SchedulingError as exc:
        raise http_error(exc) from exc
    return [
        SlotAvailability.from_candidate(slot.candidate, capacity=slot.capacity, remaining=slot.remaining)
        for slot in slots
    ]
