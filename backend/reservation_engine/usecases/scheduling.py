from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..domain.availability import AvailabilityResolver, SlotCandidate
from ..domain.calendar import CalendarRuleStore, FacilityCalendar
from ..domain.capacity import CapacityLedger
from ..domain.errors import BusyError, InvalidRequestError, ReservationNotFoundError, SchedulingError
from ..domain.repositories import ReservationUnitOfWork
from ..domain.state_machine import ReservationStateMachine, Transition
from ..infrastructure.locks import SlotLockRegistry
from ..models import Reservation
from ..utils.activity_log import emit_activity
from ..utils.time import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OpenSlot:
    candidate: SlotCandidate
    capacity: int
    remaining: int


@dataclass(frozen=True)
class _Engine:
    calendar: FacilityCalendar
    resolver: AvailabilityResolver
    ledger: CapacityLedger
    machine: ReservationStateMachine


class SchedulingFacade:
    """
    Entry point for everything that asks about or changes reservations.

    Holds no slot or reservation state of its own: each call resolves the current calendar
    and reads the current reservations. Booking and status changes for one (date, slot)
    run one at a time under that slot's lock, inside a single transaction.
    """

    def __init__(
        self,
        *,
        calendar: Callable[[], Awaitable[FacilityCalendar]],
        unit_of_work: ReservationUnitOfWork,
        locks: SlotLockRegistry,
        clock: Callable[[], datetime] = utc_now,
        emit: Callable[..., Any] = emit_activity,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        self._calendar = calendar
        self._unit_of_work = unit_of_work
        self.locks = locks
        self._clock = clock
        self._emit = emit
        self.retry_attempts = max(retry_attempts, 1)
        self.retry_backoff_seconds = retry_backoff_seconds

    async def get_open_slots(self, slot_date: date, *, include_full: bool = False) -> list[OpenSlot]:
        engine = await self._engine()
        candidates = list(engine.resolver.list_slots(slot_date, now=self._clock()))
        if not candidates:
            return []
        async with self._unit_of_work() as repo:
            reservations = await repo.list_for_date(slot_date)
        slots: list[OpenSlot] = []
        for candidate in candidates:
            remaining = engine.ledger.remaining_capacity(slot_date, candidate.slot_start, reservations)
            if remaining > 0 or include_full:
                slots.append(OpenSlot(candidate=candidate, capacity=engine.ledger.capacity, remaining=remaining))
        return slots

    async def suggest_alternatives(
        self,
        slot_date: date,
        slot_start: time,
        guests: int,
        *,
        limit: int = 3,
    ) -> list[OpenSlot]:
        """
        Other open slots on `slot_date` that can still seat `guests`, nearest to `slot_start` first.
        Ties go to the earlier slot. Read-only: nothing is held or booked.
        """
        if guests < 1:
            raise InvalidRequestError("guest count must be at least 1", slot_date=slot_date, slot_start=slot_start)
        requested = datetime.combine(slot_date, slot_start)

        def nearest(slot: OpenSlot) -> tuple[timedelta, datetime]:
            return abs(datetime.combine(slot_date, slot.candidate.slot_start) - requested), slot.candidate.starts_at

        fitting = [
            slot
            for slot in await self.get_open_slots(slot_date)
            if slot.remaining >= guests and slot.candidate.slot_start != slot_start
        ]
        return sorted(fitting, key=nearest)[: max(limit, 0)]

    async def book(
        self,
        *,
        member_ref: str,
        slot_date: date,
        slot_start: time,
        guests: int,
        special_request: Optional[str] = None,
    ) -> Reservation:
        async def attempt() -> Reservation:
            engine = await self._engine()
            now = self._clock()
            async with self._unit_of_work() as repo:
                await repo.lock_slot(slot_date, slot_start)
                current = await repo.list_for_slot(slot_date, slot_start)
                transition = engine.machine.create(
                    slot_date=slot_date,
                    slot_start=slot_start,
                    guests=guests,
                    current_reservations=current,
                    now=now,
                )
                reservation = await repo.create(
                    member_ref=member_ref,
                    slot_date=slot_date,
                    slot_start=slot_start,
                    guests=guests,
                    status=transition.status_to,
                    special_request=special_request,
                )
            self._report(transition, reservation, now)
            return reservation

        try:
            return await self._serialized(slot_date, slot_start, attempt)
        except SchedulingError as exc:
            logger.info("booking rejected for %s: %s", member_ref, exc.as_detail())
            raise

    async def change_status(self, reservation_id: int, target_status: str) -> Reservation:
        existing = await self.get_reservation(reservation_id)

        async def attempt() -> Reservation:
            engine = await self._engine()
            now = self._clock()
            async with self._unit_of_work() as repo:
                await repo.lock_slot(existing.slot_date, existing.slot_start)
                reservation = await repo.get_for_update(reservation_id)
                if reservation is None:
                    raise ReservationNotFoundError(f"reservation {reservation_id} not found")
                current = await repo.list_for_slot(reservation.slot_date, reservation.slot_start)
                transition = engine.machine.plan(
                    reservation,
                    target_status,
                    current_reservations=current,
                    now=now,
                )
                engine.machine.apply(reservation, transition, at=now)
                reservation = await repo.save_status(reservation)
            self._report(transition, reservation, now)
            return reservation

        return await self._serialized(existing.slot_date, existing.slot_start, attempt)

    async def get_reservation(self, reservation_id: int) -> Reservation:
        async with self._unit_of_work() as repo:
            reservation = await repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"reservation {reservation_id} not found")
        return reservation

    async def list_reservations(self, slot_date: date) -> list[Reservation]:
        async with self._unit_of_work() as repo:
            return await repo.list_for_date(slot_date)

    async def _engine(self) -> _Engine:
        calendar = await self._calendar()
        resolver = AvailabilityResolver(CalendarRuleStore(calendar))
        ledger = CapacityLedger(calendar.grid.capacity)
        machine = ReservationStateMachine(resolver, ledger, auto_confirm=calendar.auto_confirm)
        return _Engine(calendar=calendar, resolver=resolver, ledger=ledger, machine=machine)

    async def _serialized(self, slot_date: date, slot_start: time, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                async with self.locks.hold(slot_date, slot_start):
                    return await operation()
            except BusyError:
                if attempt == self.retry_attempts:
                    raise
                logger.debug(
                    "slot %s %s busy, retry %d/%d", slot_date, slot_start, attempt, self.retry_attempts - 1
                )
                await asyncio.sleep(self.retry_backoff_seconds * attempt)
        raise BusyError("slot is busy, retry shortly", slot_date=slot_date, slot_start=slot_start)

    def _report(self, transition: Transition, reservation: Reservation, at: datetime) -> None:
        self._emit(
            action=f"reservation.{transition.action}",
            reservation_id=reservation.id,
            member_ref=reservation.member_ref,
            slot_date=reservation.slot_date,
            slot_start=reservation.slot_start,
            guests=reservation.guests,
            status_from=transition.status_from,
            status_to=transition.status_to,
            version=reservation.version,
            timestamp=at,
        )
