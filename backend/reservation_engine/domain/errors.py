from __future__ import annotations

from datetime import date, time
from typing import Optional


class SchedulingError(Exception):
    """Base for every outcome the engine refuses. Carries enough context to render a message."""

    retryable = False

    def __init__(
        self,
        reason: str,
        *,
        slot_date: Optional[date] = None,
        slot_start: Optional[time] = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.slot_date = slot_date
        self.slot_start = slot_start

    def as_detail(self) -> dict[str, object]:
        detail: dict[str, object] = {"error": type(self).__name__, "reason": self.reason}
        if self.slot_date is not None:
            detail["date"] = self.slot_date.isoformat()
        if self.slot_start is not None:
            detail["slot_start"] = self.slot_start.strftime("%H:%M")
        return detail


class ConfigError(SchedulingError):
    """Facility configuration is malformed or incomplete. Fatal for the operator, never retried."""


class SlotUnavailableError(SchedulingError):
    pass


class CapacityExceededError(SchedulingError):
    def __init__(
        self,
        reason: str,
        *,
        slot_date: Optional[date] = None,
        slot_start: Optional[time] = None,
        requested: int = 0,
        remaining: int = 0,
    ) -> None:
        super().__init__(reason, slot_date=slot_date, slot_start=slot_start)
        self.requested = requested
        self.remaining = remaining

    def as_detail(self) -> dict[str, object]:
        detail = super().as_detail()
        detail["requested"] = self.requested
        detail["remaining"] = self.remaining
        return detail


class InvalidRequestError(SchedulingError):
    pass


class InvalidTransitionError(SchedulingError):
    def __init__(
        self,
        reason: str,
        *,
        status_from: Optional[str] = None,
        status_to: Optional[str] = None,
    ) -> None:
        super().__init__(reason)
        self.status_from = status_from
        self.status_to = status_to

    def as_detail(self) -> dict[str, object]:
        detail = super().as_detail()
        detail["status_from"] = self.status_from
        detail["status_to"] = self.status_to
        return detail


class BusyError(SchedulingError):
    """The serialization unit for a slot could not be acquired in time. Safe to retry."""

    retryable = True


class ReservationNotFoundError(SchedulingError):
    pass
