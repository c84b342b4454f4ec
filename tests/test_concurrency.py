import asyncio

import pytest

from app.services.concurrency import TaskError, run_bounded


@pytest.mark.anyio
async def test_results_follow_input_order():
    async def work(item: int, index: int) -> int:
        await asyncio.sleep(0.01 * (5 - item))
        return item * 10

    results = await run_bounded([1, 2, 3, 4], work, concurrency=2)

    assert results == [10, 20, 30, 40]


@pytest.mark.anyio
async def test_in_flight_work_never_exceeds_limit():
    in_flight = 0
    peak = 0

    async def work(item: int, index: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.005)
        in_flight -= 1
        return item

    await run_bounded(list(range(12)), work, concurrency=3)

    assert peak == 3


@pytest.mark.anyio
async def test_failure_is_captured_per_item():
    async def work(item: str, index: int) -> str:
        if item == "bad":
            raise ValueError("lookup failed")
        return item.upper()

    results = await run_bounded(["a", "bad", "c"], work, concurrency=2)

    assert results[0] == "A"
    assert isinstance(results[1], TaskError)
    assert results[1].error == "lookup failed"
    assert results[2] == "C"


@pytest.mark.anyio
async def test_empty_batch_and_zero_concurrency():
    async def work(item, index):
        return item

    assert await run_bounded([], work, concurrency=3) == []
    assert await run_bounded([1, 2], work, concurrency=0) == [1, 2]
