from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from ..domain.calendar import FacilityCalendar
from ..domain.errors import ConfigError
from ..domain.repositories import FacilityConfigRepository
from ..schemas import DEFAULT_FACILITY_CONFIG, FacilityConfigDocument, OverrideIn, parse_facility_config


async def load_facility_config(config_repo: FacilityConfigRepository) -> FacilityConfigDocument:
    stored = await config_repo.load()
    return parse_facility_config(stored if stored is not None else DEFAULT_FACILITY_CONFIG)


async def load_calendar(config_repo: FacilityConfigRepository) -> FacilityCalendar:
    return (await load_facility_config(config_repo)).to_calendar()


async def replace_facility_config(
    config_repo: FacilityConfigRepository,
    *,
    data: Mapping[str, Any],
) -> FacilityConfigDocument:
    document = parse_facility_config(data)
    await config_repo.store(document.model_dump(mode="json"))
    return document


async def set_date_override(
    config_repo: FacilityConfigRepository,
    *,
    day: date,
    hours: OverrideIn,
) -> FacilityConfigDocument:
    if hours.day is not None and hours.day != day:
        raise ConfigError(f"override body is for {hours.day.isoformat()}, not {day.isoformat()}", slot_date=day)
    current = await load_facility_config(config_repo)
    calendar = current.to_calendar().with_override(day, hours.to_domain())
    return await _store_calendar(config_repo, calendar)


async def remove_date_override(
    config_repo: FacilityConfigRepository,
    *,
    day: date,
) -> FacilityConfigDocument:
    current = await load_facility_config(config_repo)
    if not any(o.day == day for o in current.overrides):
        return current
    return await _store_calendar(config_repo, current.to_calendar().without_override(day))


async def _store_calendar(
    config_repo: FacilityConfigRepository,
    calendar: FacilityCalendar,
) -> FacilityConfigDocument:
    document = FacilityConfigDocument.from_calendar(calendar)
    await config_repo.store(document.model_dump(mode="json"))
    return document
