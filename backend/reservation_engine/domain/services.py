from dataclasses import dataclass
from datetime import date, time

from .errors import CapacityExceededError, InvalidRequestError, SlotUnavailableError


@dataclass(frozen=True)
class SlotSnapshot:
    slot_date: date
    slot_start: time
    bookable: bool
    remaining: int


def validate_booking(snapshot: SlotSnapshot, *, guests: int) -> int:
    """
    Pure validation of a booking attempt, checked in order: the slot is bookable,
    the party fits, and the party is not empty.
    Returns remaining capacity after booking if OK. Raises domain errors otherwise.
    """
    if not snapshot.bookable:
        raise SlotUnavailableError(
            "slot is closed or outside the booking window",
            slot_date=snapshot.slot_date,
            slot_start=snapshot.slot_start,
        )
    if guests > snapshot.remaining:
        raise CapacityExceededError(
            "capacity exceeded",
            requested=guests,
            remaining=snapshot.remaining,
            slot_date=snapshot.slot_date,
            slot_start=snapshot.slot_start,
        )
    if guests < 1:
        raise InvalidRequestError(
            "guest count must be at least 1",
            slot_date=snapshot.slot_date,
            slot_start=snapshot.slot_start,
        )
    return snapshot.remaining - guests
