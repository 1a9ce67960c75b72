from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ..deps import get_facade
from ..domain.errors import SchedulingError
from ..schemas import ReservationCreate, ReservationRead, ReservationStatusChange
from ..usecases.scheduling import SchedulingFacade
from .errors import http_error

router = APIRouter(prefix="", tags=["reservations"])

ACTIVITY_FAILED = "reservation saved but activity log failed"


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    facade: SchedulingFacade = Depends(get_facade),
) -> ReservationRead:
    try:
        reservation = await facade.book(
            member_ref=payload.member_ref,
            slot_date=payload.slot_date,
            slot_start=payload.slot_start,
            guests=payload.guests,
            special_request=payload.special_request,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=ACTIVITY_FAILED) from exc
    return ReservationRead.from_db(reservation=reservation)


@router.get("/reservations", response_model=List[ReservationRead])
async def list_reservations(
    slot_date: date = Query(...),
    facade: SchedulingFacade = Depends(get_facade),
) -> list[ReservationRead]:
    rows = await facade.list_reservations(slot_date)
    return [ReservationRead.from_db(reservation=res) for res in rows]


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    facade: SchedulingFacade = Depends(get_facade),
) -> ReservationRead:
    try:
        reservation = await facade.get_reservation(reservation_id)
    except SchedulingError as exc:
        raise http_error(exc) from exc
    return ReservationRead.from_db(reservation=reservation)


@router.post("/reservations/{reservation_id}/status", response_model=ReservationRead)
async def change_reservation_status(
    payload: ReservationStatusChange,
    reservation_id: int = Path(..., ge=1),
    facade: SchedulingFacade = Depends(get_facade),
) -> ReservationRead:
    try:
        reservation = await facade.change_status(reservation_id, payload.status)
    except SchedulingError as exc:
        raise http_error(exc) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=ACTIVITY_FAILED) from exc
    return ReservationRead.from_db(reservation=reservation)
