import asyncio
from datetime import date, time

import pytest
from reservation_engine.domain.errors import BusyError
from reservation_engine.infrastructure.locks import SlotLockRegistry

DAY = date(2026, 10, 19)


@pytest.mark.asyncio
async def test_same_slot_is_serialized() -> None:
    registry = SlotLockRegistry(timeout_seconds=1.0)
    order: list[str] = []

    async def worker(name: str) -> None:
        async with registry.hold(DAY, time(9, 0)):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_timeout_raises_busy_and_entries_are_dropped() -> None:
    registry = SlotLockRegistry(timeout_seconds=0.01)
    async with registry.hold(DAY, time(9, 0)):
        with pytest.raises(BusyError) as excinfo:
            async with registry.hold(DAY, time(9, 0)):
                pass  # pragma: no cover
        assert excinfo.value.slot_start == time(9, 0)
        async with registry.hold(DAY, time(10, 0)):
            assert len(registry) == 2
    assert len(registry) == 0
