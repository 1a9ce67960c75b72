from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import BusyError
from ..domain.repositories import FacilityConfigRepository, ReservationRepository
from ..models import FacilitySettings, Reservation, ReservationStatus, SlotLock


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_slot(self, slot_date: date, slot_start: time) -> None:
        stmt = (
            select(SlotLock)
            .where(SlotLock.slot_date == slot_date, SlotLock.slot_start == slot_start)
            .with_for_update()
        )
        try:
            if await self.session.scalar(stmt) is not None:
                return
            try:
                async with self.session.begin_nested():
                    self.session.add(SlotLock(slot_date=slot_date, slot_start=slot_start))
            except IntegrityError:
                # Created by a concurrent transaction; fall through and wait on its row.
                pass
            await self.session.scalar(stmt)
        except OperationalError as exc:
            raise BusyError("timed out waiting for slot lock", slot_date=slot_date, slot_start=slot_start) from exc

    async def list_for_date(self, slot_date: date) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.slot_date == slot_date)
            .order_by(Reservation.slot_start, Reservation.id)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_for_slot(self, slot_date: date, slot_start: time) -> List[Reservation]:
        stmt = select(Reservation).where(
            Reservation.slot_date == slot_date,
            Reservation.slot_start == slot_start,
        )
        return list((await self.session.scalars(stmt)).all())

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.session.scalar(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        return result if isinstance(result, Reservation) else None

    async def create(
        self,
        *,
        member_ref: str,
        slot_date: date,
        slot_start: time,
        guests: int,
        status: ReservationStatus,
        special_request: Optional[str],
    ) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            member_ref=member_ref,
            slot_date=slot_date,
            slot_start=slot_start,
            guests=guests,
            status=status,
            special_request=special_request,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save_status(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation


class SqlAlchemyFacilityConfigRepository(FacilityConfigRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def load(self) -> Optional[dict[str, Any]]:
        row = await self.session.scalar(select(FacilitySettings).order_by(FacilitySettings.id).limit(1))
        return dict(row.document) if row is not None else None

    async def store(self, document: dict[str, Any]) -> None:
        row = await self.session.scalar(
            select(FacilitySettings).order_by(FacilitySettings.id).limit(1).with_for_update()
        )
        if row is None:
            row = FacilitySettings(document=document, updated_at=_utc_now_naive())
            self.session.add(row)
        else:
            row.document = document
            row.updated_at = _utc_now_naive()
        await self.session.flush()
