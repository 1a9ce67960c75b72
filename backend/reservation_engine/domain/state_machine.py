from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional, Protocol

from ..models import ReservationStatus
from .availability import AvailabilityResolver
from .capacity import BookedSeat, CapacityLedger
from .errors import InvalidTransitionError
from .services import SlotSnapshot, validate_booking


class MutableReservation(Protocol):
    slot_date: date
    slot_start: time
    guests: int
    status: ReservationStatus
    version: int
    updated_at: datetime


@dataclass(frozen=True)
class Transition:
    action: str
    status_from: Optional[ReservationStatus]
    status_to: ReservationStatus


_ALLOWED: dict[tuple[ReservationStatus, ReservationStatus], str] = {
    (ReservationStatus.PENDING, ReservationStatus.CONFIRMED): "confirmed",
    (ReservationStatus.PENDING, ReservationStatus.CANCELLED): "cancelled",
    (ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED): "cancelled",
    (ReservationStatus.CANCELLED, ReservationStatus.PENDING): "reactivated",
    (ReservationStatus.CANCELLED, ReservationStatus.CONFIRMED): "reactivated",
}


class ReservationStateMachine:
    """
    Owns every change to a reservation's status.
    Creation and reactivation run the full booking guards; confirm and cancel do not,
    since a pending reservation already holds its capacity.
    """

    def __init__(self, resolver: AvailabilityResolver, ledger: CapacityLedger, *, auto_confirm: bool) -> None:
        self.resolver = resolver
        self.ledger = ledger
        self.auto_confirm = auto_confirm

    def create(
        self,
        *,
        slot_date: date,
        slot_start: time,
        guests: int,
        current_reservations: Iterable[BookedSeat],
        now: datetime,
    ) -> Transition:
        self._guard(slot_date, slot_start, guests, current_reservations, now)
        initial = ReservationStatus.CONFIRMED if self.auto_confirm else ReservationStatus.PENDING
        return Transition(action="created", status_from=None, status_to=initial)

    def plan(
        self,
        reservation: MutableReservation,
        target: str,
        *,
        current_reservations: Iterable[BookedSeat],
        now: datetime,
    ) -> Transition:
        current = reservation.status
        try:
            status_to = ReservationStatus(target)
        except ValueError as exc:
            raise InvalidTransitionError(
                f"unknown status {target!r}", status_from=current.value, status_to=str(target)
            ) from exc

        action = _ALLOWED.get((current, status_to))
        if action is None:
            raise InvalidTransitionError(
                f"cannot move reservation from {current.value} to {status_to.value}",
                status_from=current.value,
                status_to=status_to.value,
            )
        if action == "reactivated":
            # Availability or capacity may have moved while it was cancelled.
            self._guard(
                reservation.slot_date,
                reservation.slot_start,
                reservation.guests,
                current_reservations,
                now,
            )
        return Transition(action=action, status_from=current, status_to=status_to)

    def apply(self, reservation: MutableReservation, transition: Transition, *, at: Optional[datetime] = None) -> None:
        if reservation.status != transition.status_from:
            raise InvalidTransitionError(
                "reservation status changed since the transition was planned",
                status_from=reservation.status.value,
                status_to=transition.status_to.value,
            )
        reservation.status = transition.status_to
        reservation.version += 1
        reservation.updated_at = (at or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(tzinfo=None)

    def _guard(
        self,
        slot_date: date,
        slot_start: time,
        guests: int,
        current_reservations: Iterable[BookedSeat],
        now: datetime,
    ) -> int:
        bookable = slot_start in self.resolver.list_slots(slot_date, now=now)
        snapshot = SlotSnapshot(
            slot_date=slot_date,
            slot_start=slot_start,
            bookable=bookable,
            remaining=self.ledger.remaining_capacity(slot_date, slot_start, current_reservations),
        )
        return validate_booking(snapshot, guests=guests)
