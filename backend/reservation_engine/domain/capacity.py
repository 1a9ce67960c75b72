from __future__ import annotations

from datetime import date, time
from typing import Iterable, Protocol

from ..models import ReservationStatus

ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})


class BookedSeat(Protocol):
    slot_date: date
    slot_start: time
    guests: int
    status: ReservationStatus


def committed_guests(reservations: Iterable[BookedSeat], *, slot_date: date, slot_start: time) -> int:
    return sum(
        r.guests
        for r in reservations
        if r.slot_date == slot_date and r.slot_start == slot_start and r.status in ACTIVE_STATUSES
    )


class CapacityLedger:
    def __init__(self, capacity: int) -> None:
        self.capacity = capacity

    def remaining_capacity(
        self,
        slot_date: date,
        slot_start: time,
        current_reservations: Iterable[BookedSeat],
    ) -> int:
        reserved = committed_guests(current_reservations, slot_date=slot_date, slot_start=slot_start)
        # Lowering capacity below existing bookings leaves them in place; nothing more fits.
        return max(self.capacity - reserved, 0)
