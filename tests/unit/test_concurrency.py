"""Tests for the fan-out helper."""

import asyncio

import pytest

from critical.core.concurrency import gather_or_cancel


@pytest.mark.unit
async def test_results_keep_submission_order():
    async def delayed(value, delay):
        await asyncio.sleep(delay)
        return value

    assert await gather_or_cancel(delayed("a", 0.03), delayed("b", 0.0), delayed("c", 0.01)) == ["a", "b", "c"]


@pytest.mark.unit
async def test_first_failure_cancels_siblings():
    cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    async def failing():
        await asyncio.sleep(0)
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await gather_or_cancel(slow(), failing())

    assert cancelled.is_set()
