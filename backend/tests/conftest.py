import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timezone
from typing import Any, AsyncIterator, Callable, Optional
from zoneinfo import ZoneInfo

import pytest
from reservation_engine.domain.calendar import (
    CLOSED,
    BookingWindowPolicy,
    FacilityCalendar,
    OpenInterval,
    SlotGrid,
    Weekday,
)
from reservation_engine.infrastructure.locks import SlotLockRegistry
from reservation_engine.models import Reservation, ReservationStatus
from reservation_engine.usecases.scheduling import SchedulingFacade

CHICAGO = ZoneInfo("America/Chicago")
# Sunday 2026-10-18 08:00 in Chicago; Monday 2026-10-19 09:00 is 25 hours later.
NOW = datetime(2026, 10, 18, 8, 0, tzinfo=CHICAGO)
MONDAY = date(2026, 10, 19)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryReservationRepo:
    """Yields to the event loop on every call so unsynchronized callers would interleave."""

    def __init__(self, store: "InMemoryReservationStore") -> None:
        self.store = store

    async def lock_slot(self, slot_date: date, slot_start: time) -> None:
        self.store.lock_calls.append((slot_date, slot_start))
        await asyncio.sleep(0)

    async def list_for_date(self, slot_date: date) -> list[Reservation]:
        await asyncio.sleep(0)
        return [r for r in self.store.rows.values() if r.slot_date == slot_date]

    async def list_for_slot(self, slot_date: date, slot_start: time) -> list[Reservation]:
        await asyncio.sleep(0)
        return [r for r in self.store.rows.values() if r.slot_date == slot_date and r.slot_start == slot_start]

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return self.store.rows.get(reservation_id)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        await asyncio.sleep(0)
        return self.store.rows.get(reservation_id)

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
        await asyncio.sleep(0)
        now = _utc_now_naive()
        reservation = Reservation(
            id=self.store.next_id,
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
        self.store.next_id += 1
        self.store.rows[reservation.id] = reservation
        return reservation

    async def save_status(self, reservation: Reservation) -> Reservation:
        self.store.saved.append((reservation.id, reservation.status))
        return reservation


class InMemoryReservationStore:
    def __init__(self) -> None:
        self.rows: dict[int, Reservation] = {}
        self.next_id = 1
        self.lock_calls: list[tuple[date, time]] = []
        self.saved: list[tuple[int, ReservationStatus]] = []

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[InMemoryReservationRepo]:
        yield InMemoryReservationRepo(self)


class InMemoryConfigRepo:
    def __init__(self, document: Optional[dict[str, Any]] = None) -> None:
        self.document = document
        self.store_calls = 0

    async def load(self) -> Optional[dict[str, Any]]:
        return None if self.document is None else dict(self.document)

    async def store(self, document: dict[str, Any]) -> None:
        self.store_calls += 1
        self.document = document


def build_calendar(**changes: Any) -> FacilityCalendar:
    weekly = {day: CLOSED for day in Weekday}
    weekly[Weekday.MONDAY] = OpenInterval(opens_at=time(9, 0), closes_at=time(17, 0))
    weekly[Weekday.TUESDAY] = OpenInterval(opens_at=time(9, 0), closes_at=time(17, 0))
    values: dict[str, Any] = {
        "weekly_hours": weekly,
        "grid": SlotGrid(duration_minutes=60, capacity=4),
        "policy": BookingWindowPolicy(min_notice_hours=24, max_advance_days=30),
        "overrides": {},
        "timezone": CHICAGO,
        "auto_confirm": True,
    }
    values.update(changes)
    return FacilityCalendar(**values)


@pytest.fixture
def calendar_factory() -> Callable[..., FacilityCalendar]:
    return build_calendar


@pytest.fixture
def store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture
def activity() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def make_facade(
    store: InMemoryReservationStore,
    activity: list[dict[str, Any]],
) -> Callable[..., SchedulingFacade]:
    def factory(
        calendar: Optional[FacilityCalendar] = None,
        *,
        now: datetime = NOW,
        lock_timeout: float = 1.0,
        retry_attempts: int = 3,
        emit: Optional[Callable[..., Any]] = None,
    ) -> SchedulingFacade:
        current = {"calendar": calendar or build_calendar()}

        async def provide() -> FacilityCalendar:
            return current["calendar"]

        def record(**kwargs: Any) -> None:
            activity.append(kwargs)

        facade = SchedulingFacade(
            calendar=provide,
            unit_of_work=store.unit_of_work,
            locks=SlotLockRegistry(timeout_seconds=lock_timeout),
            clock=lambda: now,
            emit=emit or record,
            retry_attempts=retry_attempts,
            retry_backoff_seconds=0,
        )
        # Lets a test swap the calendar between calls, as a settings write would.
        facade.test_calendar = current  # type: ignore[attr-defined]
        return facade

    return factory
