from datetime import date, datetime, time, timedelta, timezone
from itertools import pairwise

import pytest
from reservation_engine.domain.availability import AvailabilityResolver
from reservation_engine.domain.calendar import CLOSED, BookingWindowPolicy, CalendarRuleStore, OpenInterval, SlotGrid

from conftest import CHICAGO, MONDAY, NOW, build_calendar


def _resolver(**changes: object) -> AvailabilityResolver:
    return AvailabilityResolver(CalendarRuleStore(build_calendar(**changes)))


def test_grid_covers_open_interval_in_duration_steps() -> None:
    slots = list(_resolver().list_slots(MONDAY, now=NOW))
    assert [s.slot_start for s in slots] == [time(h, 0) for h in range(9, 17)]
    for slot in slots:
        assert slot.ends_at - slot.starts_at == timedelta(minutes=60)
        assert slot.starts_at >= datetime.combine(MONDAY, time(9, 0), tzinfo=CHICAGO)
        assert slot.ends_at <= datetime.combine(MONDAY, time(17, 0), tzinfo=CHICAGO)


def test_slots_are_strictly_ordered() -> None:
    slots = list(_resolver(grid=SlotGrid(duration_minutes=15, capacity=2)).list_slots(MONDAY, now=NOW))
    assert len(slots) == 32
    assert all(a.starts_at < b.starts_at for a, b in pairwise(slots))


def test_trailing_partial_slot_is_dropped() -> None:
    resolver = _resolver(overrides={MONDAY: OpenInterval(opens_at=time(9, 0), closes_at=time(10, 30))})
    slots = list(resolver.list_slots(MONDAY, now=NOW))
    assert [s.slot_start for s in slots] == [time(9, 0)]
    assert slots[0].ends_at.time() == time(10, 0)


def test_closed_date_yields_empty_sequence() -> None:
    resolver = _resolver(overrides={MONDAY: CLOSED})
    assert list(resolver.list_slots(MONDAY, now=NOW)) == []


def test_min_notice_excludes_early_slots() -> None:
    now = datetime(2026, 10, 18, 10, 30, tzinfo=CHICAGO)
    slots = list(_resolver().list_slots(MONDAY, now=now))
    assert slots[0].slot_start == time(11, 0)
    assert len(slots) == 6


def test_max_advance_excludes_far_dates() -> None:
    resolver = _resolver()
    # 30 calendar days after NOW is Tuesday 2026-11-17 08:00 local, before that day opens.
    assert len(list(resolver.list_slots(date(2026, 11, 16), now=NOW))) == 8
    assert list(resolver.list_slots(date(2026, 11, 17), now=NOW)) == []


def test_slot_exactly_at_min_notice_is_included() -> None:
    now = datetime(2026, 10, 18, 9, 0, tzinfo=CHICAGO)
    slots = list(_resolver().list_slots(MONDAY, now=now))
    assert slots[0].slot_start == time(9, 0)
    assert len(slots) == 8


def test_slot_exactly_at_max_advance_is_included_across_dst() -> None:
    # NOW is on daylight time, 2026-11-17 on standard time; the horizon keeps 08:00 local.
    edge = date(2026, 11, 17)
    resolver = _resolver(overrides={edge: OpenInterval(opens_at=time(7, 0), closes_at=time(10, 0))})
    assert [s.slot_start for s in resolver.list_slots(edge, now=NOW)] == [time(7, 0), time(8, 0)]


def test_now_in_another_timezone_is_compared_by_instant() -> None:
    utc_now = NOW.astimezone(timezone.utc)
    assert list(_resolver().list_slots(MONDAY, now=utc_now)) == list(_resolver().list_slots(MONDAY, now=NOW))


def test_absolute_booking_dates_limit_bookable_days() -> None:
    policy = BookingWindowPolicy(min_notice_hours=24, max_advance_days=30, opens_on=date(2026, 10, 20))
    resolver = _resolver(policy=policy)
    assert list(resolver.list_slots(MONDAY, now=NOW)) == []
    assert len(list(resolver.list_slots(date(2026, 10, 20), now=NOW))) == 8


def test_sequence_is_restartable_and_lazy() -> None:
    sequence = _resolver().list_slots(MONDAY, now=NOW)
    first = list(sequence)
    second = list(sequence)
    assert first == second
    assert time(12, 0) in sequence
    assert time(12, 30) not in sequence
    assert sequence.find(time(16, 0)) == first[-1]


def test_slot_grid_ignores_booking_window() -> None:
    resolver = _resolver()
    late_now = datetime(2026, 10, 19, 12, 0, tzinfo=CHICAGO)
    assert list(resolver.list_slots(MONDAY, now=late_now)) == []
    assert len(list(resolver.slot_grid(MONDAY))) == 8


def test_naive_now_is_rejected() -> None:
    with pytest.raises(ValueError):
        _resolver().list_slots(MONDAY, now=datetime(2026, 10, 18, 8, 0))
