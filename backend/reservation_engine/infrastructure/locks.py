from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, time
from typing import AsyncIterator

from ..domain.errors import BusyError

SlotKey = tuple[date, time]


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SlotLockRegistry:
    """
    One asyncio lock per (date, slot start), created on first use and dropped once nobody
    holds or waits on it. Different slots never contend.
    """

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        self._entries: dict[SlotKey, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, slot_date: date, slot_start: time) -> AsyncIterator[None]:
        key = (slot_date, slot_start)
        entry = self._entries.setdefault(key, _Entry())
        entry.users += 1
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                raise BusyError(
                    "slot is busy, retry shortly", slot_date=slot_date, slot_start=slot_start
                ) from None
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)
