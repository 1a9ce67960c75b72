from __future__ import annotations

from datetime import date, time
from typing import Any, AsyncContextManager, Callable, Optional, Protocol

from ..models import Reservation, ReservationStatus


class ReservationRepository(Protocol):
    async def lock_slot(self, slot_date: date, slot_start: time) -> None: ...

    async def list_for_date(self, slot_date: date) -> list[Reservation]: ...

    async def list_for_slot(self, slot_date: date, slot_start: time) -> list[Reservation]: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def create(
        self,
        *,
        member_ref: str,
        slot_date: date,
        slot_start: time,
        guests: int,
        status: ReservationStatus,
        special_request: Optional[str],
    ) -> Reservation: ...

    async def save_status(self, reservation: Reservation) -> Reservation: ...


class FacilityConfigRepository(Protocol):
    async def load(self) -> dict[str, Any] | None: ...

    async def store(self, document: dict[str, Any]) -> None: ...


# Opens one transaction and yields a repository bound to it.
ReservationUnitOfWork = Callable[[], AsyncContextManager[ReservationRepository]]
