from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterator, Optional

from .calendar import CalendarRuleStore, Closed


@dataclass(frozen=True)
class SlotCandidate:
    slot_date: date
    starts_at: datetime
    ends_at: datetime

    @property
    def slot_start(self) -> time:
        return self.starts_at.time()


class SlotSequence:
    """
    Finite, ordered and restartable view over a day's slots.
    Nothing is computed until iterated, and every iteration starts from scratch.
    """

    def __init__(self, produce: Callable[[], Iterator[SlotCandidate]]) -> None:
        self._produce = produce

    def __iter__(self) -> Iterator[SlotCandidate]:
        return self._produce()

    def __contains__(self, slot_start: object) -> bool:
        return self.find(slot_start) is not None  # type: ignore[arg-type]

    def find(self, slot_start: time) -> Optional[SlotCandidate]:
        for candidate in self:
            if candidate.slot_start == slot_start:
                return candidate
        return None


class AvailabilityResolver:
    def __init__(self, rules: CalendarRuleStore) -> None:
        self.rules = rules

    def slot_grid(self, day: date) -> SlotSequence:
        """Every slot of the effective open interval, before the booking window is applied."""
        return SlotSequence(lambda: self._expand(day))

    def list_slots(self, day: date, *, now: datetime) -> SlotSequence:
        """Slots that are open on `day` and currently inside the booking window."""
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        # Resolve eagerly so configuration problems surface on the call, not on first iteration.
        self.rules.get_effective_hours(day)
        return SlotSequence(lambda: (c for c in self._expand(day) if self._within_window(c, now)))

    def _expand(self, day: date) -> Iterator[SlotCandidate]:
        hours = self.rules.get_effective_hours(day)
        if isinstance(hours, Closed):
            return
        calendar = self.rules.calendar
        tz = calendar.timezone
        step = timedelta(minutes=calendar.grid.duration_minutes)
        start = datetime.combine(day, hours.opens_at)
        close = datetime.combine(day, hours.closes_at)
        # A trailing partial slot is dropped, never shortened.
        while start + step <= close:
            yield SlotCandidate(
                slot_date=day,
                starts_at=start.replace(tzinfo=tz),
                ends_at=(start + step).replace(tzinfo=tz),
            )
            start += step

    def _within_window(self, candidate: SlotCandidate, now: datetime) -> bool:
        policy = self.rules.calendar.policy
        if not policy.covers_date(candidate.slot_date):
            return False
        now_utc = now.astimezone(timezone.utc)
        starts_utc = candidate.starts_at.astimezone(timezone.utc)
        if starts_utc < now_utc + timedelta(hours=policy.min_notice_hours):
            return False
        # Advance days are calendar days: same local wall-clock time, whatever DST does in between.
        local_now = now.astimezone(self.rules.calendar.timezone)
        horizon = (local_now.replace(tzinfo=None) + timedelta(days=policy.max_advance_days)).replace(
            tzinfo=self.rules.calendar.timezone
        )
        return starts_utc <= horizon.astimezone(timezone.utc)
