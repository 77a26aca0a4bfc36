"""Unit tests for the warm-up + bounded fan-out coordinator."""

import asyncio

import pytest

from printgen.pipeline.fanout import FanOutCoordinator, FanOutState
from printgen.pipeline.models import ChunkPlan, InlineResult


def chunks(n: int) -> list[ChunkPlan]:
    return [
        ChunkPlan(chunk_index=i, item_start_index=i * 10, item_end_index=i * 10 + 9)
        for i in range(n)
    ]


def result_for(chunk: ChunkPlan) -> InlineResult:
    return InlineResult(data=f"chunk-{chunk.chunk_index}".encode())


class RecordingRender:
    """Render function with per-chunk delays and failures."""

    def __init__(self, delays=None, fail_on=None):
        self.delays = delays or {}
        self.fail_on = fail_on or set()
        self.started: list[int] = []
        self.finished: list[int] = []
        self.cancelled: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, chunk: ChunkPlan) -> InlineResult:
        self.started.append(chunk.chunk_index)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(chunk.chunk_index, 0))
            if chunk.chunk_index in self.fail_on:
                raise ConnectionError(f"chunk {chunk.chunk_index} failed")
            self.finished.append(chunk.chunk_index)
            return result_for(chunk)
        except asyncio.CancelledError:
            self.cancelled.append(chunk.chunk_index)
            raise
        finally:
            self.in_flight -= 1


class TestFanOut:
    @pytest.mark.asyncio
    async def test_results_follow_chunk_order(self):
        render = RecordingRender(delays={1: 0.05, 2: 0.03, 3: 0.01})
        coordinator = FanOutCoordinator(render, max_concurrency=8)

        results = await coordinator.run(chunks(4))

        assert results == [result_for(c) for c in chunks(4)]
        assert render.finished[0] == 0
        assert render.finished[1:] == [3, 2, 1]
        assert coordinator.state == FanOutState.DONE

    @pytest.mark.asyncio
    async def test_warm_up_runs_alone(self):
        render = RecordingRender(delays={0: 0.02})
        await FanOutCoordinator(render).run(chunks(5))

        assert render.started[0] == 0
        assert render.finished[0] == 0
        assert render.started.index(1) > 0
        assert set(render.started[1:]) == {1, 2, 3, 4}

    @pytest.mark.asyncio
    async def test_unordered_input_still_warms_up_chunk_zero(self):
        render = RecordingRender()
        plan = list(reversed(chunks(3)))

        results = await FanOutCoordinator(render).run(plan)

        assert render.started[0] == 0
        assert results == [result_for(c) for c in chunks(3)]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        render = RecordingRender(delays={i: 0.01 for i in range(1, 11)})
        await FanOutCoordinator(render, max_concurrency=3).run(chunks(11))

        assert render.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_single_chunk_skips_fan_out(self):
        render = RecordingRender()
        coordinator = FanOutCoordinator(render)

        results = await coordinator.run(chunks(1))

        assert results == [result_for(chunks(1)[0])]
        assert coordinator.state == FanOutState.DONE

    @pytest.mark.asyncio
    async def test_produced_accumulates_every_result(self):
        produced = []
        coordinator = FanOutCoordinator(RecordingRender(), produced=produced)

        await coordinator.run(chunks(3))

        assert sorted(r.data for r in produced) == [b"chunk-0", b"chunk-1", b"chunk-2"]

    def test_rejects_non_positive_concurrency(self):
        with pytest.raises(ValueError):
            FanOutCoordinator(RecordingRender(), max_concurrency=0)

    @pytest.mark.asyncio
    async def test_empty_plan(self):
        with pytest.raises(ValueError):
            await FanOutCoordinator(RecordingRender()).run([])


class TestFailures:
    @pytest.mark.asyncio
    async def test_warm_up_failure_prevents_fan_out(self):
        render = RecordingRender(fail_on={0})
        coordinator = FanOutCoordinator(render)

        with pytest.raises(ConnectionError, match="chunk 0"):
            await coordinator.run(chunks(4))

        assert render.started == [0]
        assert coordinator.state == FanOutState.FAILED

    @pytest.mark.asyncio
    async def test_first_failure_cancels_in_flight_siblings(self):
        render = RecordingRender(delays={1: 0.0, 2: 5.0, 3: 5.0}, fail_on={1})
        produced = []
        coordinator = FanOutCoordinator(render, produced=produced)

        with pytest.raises(ConnectionError, match="chunk 1"):
            await coordinator.run(chunks(4))

        assert sorted(render.cancelled) == [2, 3]
        assert render.in_flight == 0
        assert coordinator.state == FanOutState.FAILED
        # Only the warm-up finished, so only it reached the accumulator.
        assert [r.data for r in produced] == [b"chunk-0"]

    @pytest.mark.asyncio
    async def test_queued_chunks_never_start_after_failure(self):
        render = RecordingRender(delays={i: 5.0 for i in range(2, 6)}, fail_on={1})
        coordinator = FanOutCoordinator(render, max_concurrency=2)

        with pytest.raises(ConnectionError):
            await coordinator.run(chunks(6))

        assert 4 not in render.started
        assert 5 not in render.started
        assert render.in_flight == 0
