from __future__ import annotations

import json
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

ActivityAction = Literal[
    "reservation.created",
    "reservation.confirmed",
    "reservation.cancelled",
    "reservation.reactivated",
]

_activity_logger = logging.getLogger("activity")
_activity_logger.setLevel(logging.INFO)
if not _activity_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _activity_logger.addHandler(handler)
_activity_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def describe(
    action: ActivityAction,
    *,
    reservation_id: int,
    member_ref: str,
    slot_date: date,
    slot_start: time,
    guests: int,
) -> str:
    verb = action.split(".", 1)[1]
    party = "1 guest" if guests == 1 else f"{guests} guests"
    return (
        f"Reservation #{reservation_id} for {member_ref} on {slot_date.isoformat()} "
        f"at {slot_start:%H:%M} ({party}) {verb}"
    )


def emit_activity(
    *,
    action: ActivityAction,
    reservation_id: int,
    member_ref: str,
    slot_date: date,
    slot_start: time,
    guests: int,
    status_from: Any,
    status_to: Any,
    version: Optional[int],
    timestamp: Optional[datetime] = None,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """
    Publish one entry for the recent-activity feed as a JSON line.
    The feed itself lives elsewhere; this only reports. Raises RuntimeError if logging fails.
    """
    payload: dict[str, Any] = {
        "type": "reservation",
        "description": describe(
            action,
            reservation_id=reservation_id,
            member_ref=member_ref,
            slot_date=slot_date,
            slot_start=slot_start,
            guests=guests,
        ),
        "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        "action": action,
        "request_id": get_request_id(),
        "reservation_id": reservation_id,
        "member_ref": member_ref,
        "date": slot_date.isoformat(),
        "slot_start": slot_start.strftime("%H:%M"),
        "guests": guests,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
        "version": version,
    }
    if extra:
        payload.update(extra)

    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _activity_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit activity log") from exc
    return compact_payload
