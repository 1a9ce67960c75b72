from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, model_validator

from .domain.availability import SlotCandidate
from .domain.calendar import (
    CLOSED,
    BookingWindowPolicy,
    Closed,
    DayHours,
    FacilityCalendar,
    OpenInterval,
    SlotGrid,
    Weekday,
)
from .domain.errors import ConfigError
from .models import Reservation, ReservationStatus
from .utils.time import format_hhmm, load_zone, utc_naive_to_aware


class HoursIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    open: time
    close: time

    @model_validator(mode="after")
    def _check_order(self) -> "HoursIn":
        if self.open >= self.close:
            raise ValueError("open must be earlier than close")
        return self

    @field_serializer("open", "close")
    def _ser_time(self, value: time) -> str:
        return format_hhmm(value)

    def to_domain(self) -> OpenInterval:
        return OpenInterval(opens_at=self.open, closes_at=self.close)


WeekdayHours = Union[HoursIn, Literal["closed"]]


class OverrideIn(BaseModel):
    """Hours for one date, or `closed: true`. Without a `day` it is the body of a per-date write."""

    model_config = ConfigDict(extra="forbid")

    day: Optional[date] = None
    closed: bool = False
    open: Optional[time] = None
    close: Optional[time] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "OverrideIn":
        if self.closed:
            if self.open is not None or self.close is not None:
                raise ValueError("a closed override cannot carry open/close times")
            return self
        if self.open is None or self.close is None:
            raise ValueError("an open override needs both open and close")
        if self.open >= self.close:
            raise ValueError("open must be earlier than close")
        return self

    @field_serializer("open", "close")
    def _ser_time(self, value: Optional[time]) -> Optional[str]:
        return None if value is None else format_hhmm(value)

    def to_domain(self) -> DayHours:
        if self.closed:
            return CLOSED
        assert self.open is not None and self.close is not None
        return OpenInterval(opens_at=self.open, closes_at=self.close)

    @classmethod
    def from_domain(cls, day: date, hours: DayHours) -> "OverrideIn":
        if isinstance(hours, Closed):
            return cls(day=day, closed=True)
        return cls(day=day, open=hours.opens_at, close=hours.closes_at)


class FacilityConfigDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timezone: str = "America/Chicago"
    weekly_hours: dict[Weekday, WeekdayHours]
    overrides: list[OverrideIn] = Field(default_factory=list)
    min_notice_hours: int = Field(default=24, ge=0)
    max_advance_days: int = Field(default=30, ge=0)
    booking_opens_on: Optional[date] = None
    booking_closes_on: Optional[date] = None
    slot_duration_minutes: int = Field(gt=0)
    capacity: int = Field(gt=0)
    auto_confirm: bool = False

    @model_validator(mode="after")
    def _check_consistency(self) -> "FacilityConfigDocument":
        missing = [str(day) for day in Weekday if day not in self.weekly_hours]
        if missing:
            raise ValueError("weekly_hours is missing " + ", ".join(missing))
        seen: set[date] = set()
        for override in self.overrides:
            if override.day is None:
                raise ValueError("every override needs a day")
            if override.day in seen:
                raise ValueError(f"more than one override for {override.day.isoformat()}")
            seen.add(override.day)
        if self.booking_opens_on and self.booking_closes_on and self.booking_opens_on > self.booking_closes_on:
            raise ValueError("booking_opens_on must not be after booking_closes_on")
        load_zone(self.timezone)
        return self

    def to_calendar(self) -> FacilityCalendar:
        weekly: dict[Weekday, DayHours] = {
            day: CLOSED if hours == "closed" else hours.to_domain()  # type: ignore[union-attr]
            for day, hours in self.weekly_hours.items()
        }
        overrides = {o.day: o.to_domain() for o in self.overrides if o.day is not None}
        return FacilityCalendar(
            weekly_hours=weekly,
            overrides=overrides,
            grid=SlotGrid(duration_minutes=self.slot_duration_minutes, capacity=self.capacity),
            policy=BookingWindowPolicy(
                min_notice_hours=self.min_notice_hours,
                max_advance_days=self.max_advance_days,
                opens_on=self.booking_opens_on,
                closes_on=self.booking_closes_on,
            ),
            timezone=load_zone(self.timezone),
            auto_confirm=self.auto_confirm,
        )

    @classmethod
    def from_calendar(cls, calendar: FacilityCalendar) -> "FacilityConfigDocument":
        weekly: dict[Weekday, WeekdayHours] = {}
        for day, hours in calendar.weekly_hours.items():
            if isinstance(hours, Closed):
                weekly[day] = "closed"
            else:
                weekly[day] = HoursIn(open=hours.opens_at, close=hours.closes_at)
        return cls(
            timezone=calendar.timezone.key,
            weekly_hours=weekly,
            overrides=[OverrideIn.from_domain(d, h) for d, h in sorted(calendar.overrides.items())],
            min_notice_hours=calendar.policy.min_notice_hours,
            max_advance_days=calendar.policy.max_advance_days,
            booking_opens_on=calendar.policy.opens_on,
            booking_closes_on=calendar.policy.closes_on,
            slot_duration_minutes=calendar.grid.duration_minutes,
            capacity=calendar.grid.capacity,
            auto_confirm=calendar.auto_confirm,
        )


DEFAULT_FACILITY_CONFIG: dict[str, Any] = {
    "timezone": "America/Chicago",
    "weekly_hours": {
        "monday": {"open": "09:00", "close": "17:00"},
        "tuesday": {"open": "09:00", "close": "17:00"},
        "wednesday": {"open": "09:00", "close": "17:00"},
        "thursday": {"open": "09:00", "close": "17:00"},
        "friday": {"open": "09:00", "close": "17:00"},
        "saturday": {"open": "10:00", "close": "15:00"},
        "sunday": {"open": "10:00", "close": "15:00"},
    },
    "overrides": [],
    "min_notice_hours": 24,
    "max_advance_days": 30,
    "slot_duration_minutes": 60,
    "capacity": 10,
    "auto_confirm": False,
}


def parse_facility_config(data: Mapping[str, Any]) -> FacilityConfigDocument:
    """Validate a whole configuration document; any problem rejects all of it."""
    try:
        document = FacilityConfigDocument.model_validate(data)
        document.to_calendar()
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"invalid facility configuration: {problems}") from exc
    return document


class SlotAvailability(BaseModel):
    slot_date: date
    slot_start: time
    starts_at: datetime
    ends_at: datetime
    capacity: int
    remaining: int

    @field_serializer("slot_start")
    def _ser_start(self, value: time) -> str:
        return format_hhmm(value)

    @classmethod
    def from_candidate(cls, candidate: SlotCandidate, *, capacity: int, remaining: int) -> "SlotAvailability":
        return cls(
            slot_date=candidate.slot_date,
            slot_start=candidate.slot_start,
            starts_at=candidate.starts_at,
            ends_at=candidate.ends_at,
            capacity=capacity,
            remaining=remaining,
        )


class ReservationCreate(BaseModel):
    member_ref: str = Field(min_length=1, max_length=64)
    slot_date: date
    slot_start: time
    # Guest count bounds are a booking rule, enforced by the engine rather than here.
    guests: int
    special_request: Optional[str] = Field(default=None, max_length=2000)


class ReservationStatusChange(BaseModel):
    status: str


class ReservationRead(BaseModel):
    reservation_id: int
    member_ref: str
    slot_date: date
    slot_start: time
    guests: int
    status: ReservationStatus
    version: int
    created_at: datetime
    special_request: Optional[str] = None

    @field_serializer("slot_start")
    def _ser_start(self, value: time) -> str:
        return format_hhmm(value)

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            member_ref=reservation.member_ref,
            slot_date=reservation.slot_date,
            slot_start=reservation.slot_start,
            guests=reservation.guests,
            status=reservation.status,
            version=reservation.version,
            created_at=utc_naive_to_aware(reservation.created_at),
            special_request=reservation.special_request,
        )
