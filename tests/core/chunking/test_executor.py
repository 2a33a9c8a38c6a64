"""Tests for wave-based batch execution."""

import asyncio

import pytest

from chunkflow.core.chunking.executor import BatchExecutor
from chunkflow.core.chunking.models import CancellationToken, Stage
from chunkflow.core.errors import PipelineCancelledError


class TestBatchExecutorWaves:
    """Wave sizing, progress reporting, and result order."""

    @pytest.mark.asyncio
    async def test_seven_units_run_in_four_waves(self):
        """7 units at concurrency 2 dispatch as waves of 2, 2, 2, 1."""
        calls = []
        events = []

        async def execute(unit):
            calls.append(unit)
            return unit * 10

        executor = BatchExecutor(concurrency=2)
        results = await executor.run(list(range(7)), execute, on_progress=events.append)

        assert results == [0, 10, 20, 30, 40, 50, 60]
        assert len(calls) == 7
        assert executor.wave_count(7) == 4
        assert [event.completed for event in events] == [2, 4, 6, 7]
        assert all(event.total == 7 for event in events)
        assert all(event.stage == Stage.PROCESSING for event in events)

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self):
        """Later units finishing first do not reorder results."""

        async def execute(unit):
            await asyncio.sleep(0.01 * (3 - unit))
            return f"r{unit}"

        results = await BatchExecutor(concurrency=4).run([0, 1, 2, 3], execute)
        assert results == ["r0", "r1", "r2", "r3"]

    @pytest.mark.asyncio
    async def test_in_flight_calls_bounded_by_concurrency(self):
        in_flight = 0
        peak = 0

        async def execute(unit):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return unit

        await BatchExecutor(concurrency=3).run(list(range(10)), execute)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_stage_reported_in_events(self):
        events = []

        async def execute(unit):
            return unit

        await BatchExecutor(concurrency=2).run(
            [1, 2, 3], execute, on_progress=events.append, stage=Stage.SYNTHESIS
        )
        assert {event.stage for event in events} == {Stage.SYNTHESIS}

    @pytest.mark.asyncio
    async def test_empty_units(self):
        events = []

        async def execute(unit):
            raise AssertionError("should not be called")

        results = await BatchExecutor(concurrency=2).run([], execute, on_progress=events.append)
        assert results == []
        assert events == []

    def test_invalid_concurrency_rejected(self):
        with pytest.raises(ValueError):
            BatchExecutor(concurrency=0)


class TestBatchExecutorCancellation:
    """Cooperative cancellation at wave boundaries."""

    @pytest.mark.asyncio
    async def test_cancel_between_waves_two_and_three(self):
        """Cancelling after wave 2 stops with at most 4 calls issued."""
        calls = []
        token = CancellationToken()

        async def execute(unit):
            calls.append(unit)
            return unit

        def on_progress(event):
            if event.completed == 4:
                token.cancel()

        with pytest.raises(PipelineCancelledError) as exc_info:
            await BatchExecutor(concurrency=2).run(
                list(range(7)), execute, on_progress=on_progress, cancel_token=token
            )

        assert len(calls) <= 4
        assert exc_info.value.stage == Stage.PROCESSING
        assert exc_info.value.completed == 4
        assert exc_info.value.total == 7

    @pytest.mark.asyncio
    async def test_cancel_during_wave_discards_its_results(self):
        """A wave that settles after cancellation reports no progress."""
        events = []
        token = CancellationToken()

        async def execute(unit):
            if unit == 3:
                token.cancel()
            return unit

        with pytest.raises(PipelineCancelledError):
            await BatchExecutor(concurrency=2).run(
                list(range(7)), execute, on_progress=events.append, cancel_token=token
            )

        assert [event.completed for event in events] == [2]

    @pytest.mark.asyncio
    async def test_cancelled_before_start_issues_no_calls(self):
        token = CancellationToken()
        token.cancel()
        calls = []

        async def execute(unit):
            calls.append(unit)
            return unit

        with pytest.raises(PipelineCancelledError):
            await BatchExecutor(concurrency=2).run([1, 2], execute, cancel_token=token)
        assert calls == []


class TestBatchExecutorFailures:
    """Failure propagation."""

    @pytest.mark.asyncio
    async def test_unit_failure_fails_batch(self):
        """The first failure propagates unchanged and stops later waves."""
        calls = []

        async def execute(unit):
            calls.append(unit)
            if unit == 2:
                raise RuntimeError("upstream exploded")
            return unit

        with pytest.raises(RuntimeError, match="upstream exploded"):
            await BatchExecutor(concurrency=2).run(list(range(7)), execute)

        assert max(calls) <= 3

    @pytest.mark.asyncio
    async def test_failure_cancels_rest_of_wave(self):
        finished = []

        async def execute(unit):
            if unit == 0:
                raise ValueError("bad unit")
            await asyncio.sleep(0.2)
            finished.append(unit)
            return unit

        with pytest.raises(ValueError):
            await BatchExecutor(concurrency=2).run([0, 1], execute)

        await asyncio.sleep(0.01)
        assert finished == []
