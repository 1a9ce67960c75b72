from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping, Optional, Union
from zoneinfo import ZoneInfo

from .errors import ConfigError


class Weekday(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        # date.weekday() is 0 for Monday, matching declaration order.
        return list(cls)[day.weekday()]


@dataclass(frozen=True)
class OpenInterval:
    opens_at: time
    closes_at: time

    def __post_init__(self) -> None:
        if self.opens_at >= self.closes_at:
            raise ConfigError(
                f"open time {self.opens_at:%H:%M} must be earlier than close time {self.closes_at:%H:%M}"
            )


@dataclass(frozen=True)
class Closed:
    pass


CLOSED = Closed()

DayHours = Union[OpenInterval, Closed]


@dataclass(frozen=True)
class BookingWindowPolicy:
    min_notice_hours: int = 0
    max_advance_days: int = 0
    # Absolute bounds on bookable dates, inclusive. None leaves that side open.
    opens_on: Optional[date] = None
    closes_on: Optional[date] = None

    def __post_init__(self) -> None:
        if self.min_notice_hours < 0:
            raise ConfigError("min_notice_hours must be >= 0")
        if self.max_advance_days < 0:
            raise ConfigError("max_advance_days must be >= 0")
        if self.opens_on and self.closes_on and self.opens_on > self.closes_on:
            raise ConfigError("booking window opens after it closes")

    def covers_date(self, day: date) -> bool:
        if self.opens_on is not None and day < self.opens_on:
            return False
        if self.closes_on is not None and day > self.closes_on:
            return False
        return True


@dataclass(frozen=True)
class SlotGrid:
    duration_minutes: int
    capacity: int

    def __post_init__(self) -> None:
        if self.duration_minutes <= 0:
            raise ConfigError("slot duration must be positive")
        if self.capacity <= 0:
            raise ConfigError("capacity must be positive")


@dataclass(frozen=True)
class FacilityCalendar:
    """A consistent snapshot of everything the engine needs to know about the facility."""

    weekly_hours: Mapping[Weekday, DayHours]
    grid: SlotGrid
    policy: BookingWindowPolicy = field(default_factory=BookingWindowPolicy)
    overrides: Mapping[date, DayHours] = field(default_factory=dict)
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("America/Chicago"))
    auto_confirm: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "weekly_hours", MappingProxyType(dict(self.weekly_hours)))
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))

    def with_override(self, day: date, hours: DayHours) -> "FacilityCalendar":
        overrides = dict(self.overrides)
        overrides[day] = hours
        return self._replace_overrides(overrides)

    def without_override(self, day: date) -> "FacilityCalendar":
        overrides = dict(self.overrides)
        overrides.pop(day, None)
        return self._replace_overrides(overrides)

    def _replace_overrides(self, overrides: dict[date, DayHours]) -> "FacilityCalendar":
        return FacilityCalendar(
            weekly_hours=self.weekly_hours,
            grid=self.grid,
            policy=self.policy,
            overrides=overrides,
            timezone=self.timezone,
            auto_confirm=self.auto_confirm,
        )


class CalendarRuleStore:
    """Answers "when is the facility open on this date" from a calendar snapshot."""

    def __init__(self, calendar: FacilityCalendar) -> None:
        self.calendar = calendar
        self._missing = [day for day in Weekday if day not in calendar.weekly_hours]

    def get_effective_hours(self, day: date) -> DayHours:
        if self._missing:
            raise ConfigError(
                "recurring hours missing for " + ", ".join(str(d) for d in self._missing)
            )
        override = self.calendar.overrides.get(day)
        if override is not None:
            return override
        return self.calendar.weekly_hours.get(Weekday.of(day), CLOSED)
