from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from ..domain.calendar import FacilityCalendar


class CalendarCache:
    """Keeps the last loaded calendar for `ttl_seconds`; settings writes call `invalidate()`."""

    def __init__(
        self,
        load: Callable[[], Awaitable[FacilityCalendar]],
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._load = load
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[FacilityCalendar] = None
        self._loaded_at = 0.0
        self._refresh = asyncio.Lock()

    async def get(self) -> FacilityCalendar:
        if self._fresh():
            assert self._value is not None
            return self._value
        async with self._refresh:
            if not self._fresh():
                self._value = await self._load()
                self._loaded_at = self._clock()
            assert self._value is not None
            return self._value

    def invalidate(self) -> None:
        self._value = None

    def _fresh(self) -> bool:
        return self._value is not None and self._clock() - self._loaded_at < self.ttl_seconds
