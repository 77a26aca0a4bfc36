"""
Warm-up then bounded concurrent rendering of a job's chunks.

States: IDLE -> WARMING_UP -> FANNING_OUT -> COLLECTING -> DONE | FAILED.

Chunk 0 is rendered alone so a cold remote function starts once and a
broken job fails before any parallel work is issued. The rest run under a
semaphore; the first terminal failure cancels every sibling still in
flight. Results come back in chunk order whatever order they finished in.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from printgen.core.config import MAX_CONCURRENT_CHUNKS
from printgen.pipeline.models import ChunkPlan, RenderResult

logger = logging.getLogger(__name__)

RenderFn = Callable[[ChunkPlan], Awaitable[RenderResult]]


class FanOutState(str, Enum):
    IDLE = "idle"
    WARMING_UP = "warming_up"
    FANNING_OUT = "fanning_out"
    COLLECTING = "collecting"
    DONE = "done"
    FAILED = "failed"


class FanOutCoordinator:
    """Drive one job's chunks through a render function.

    Args:
        render: Coroutine function rendering a single chunk
        max_concurrency: Upper bound on simultaneous renders after warm-up
        produced: Accumulator receiving every result as soon as it exists;
            the orchestrator cleans these up on any exit path
    """

    def __init__(
        self,
        render: RenderFn,
        max_concurrency: int = MAX_CONCURRENT_CHUNKS,
        produced: Optional[list[RenderResult]] = None,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self.render = render
        self.max_concurrency = max_concurrency
        self.produced: list[RenderResult] = produced if produced is not None else []
        self.state = FanOutState.IDLE

    async def _render_tagged(
        self, chunk: ChunkPlan, semaphore: asyncio.Semaphore
    ) -> tuple[int, RenderResult]:
        async with semaphore:
            result = await self.render(chunk)
        self.produced.append(result)
        return chunk.chunk_index, result

    async def _fan_out(self, chunks: list[ChunkPlan]) -> list[tuple[int, RenderResult]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.create_task(
                self._render_tagged(chunk, semaphore), name=f"chunk-{chunk.chunk_index}"
            )
            for chunk in chunks
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await self._cancel(tasks)
            raise

        failed = [t for t in done if not t.cancelled() and t.exception() is not None]
        if failed:
            if pending:
                logger.warning(
                    f"Cancelling {len(pending)} in-flight chunks after a chunk failed"
                )
            await self._cancel(list(pending))
            raise failed[0].exception()

        return [t.result() for t in tasks]

    @staticmethod
    async def _cancel(tasks: list[asyncio.Task]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run(self, chunks: list[ChunkPlan]) -> list[RenderResult]:
        """
        Render every chunk and return results index-aligned with chunk order.

        Raises:
          The first chunk's terminal error; no partial result is returned.
        """
        if not chunks:
            raise ValueError("at least one chunk is required")

        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        warm_up, rest = ordered[0], ordered[1:]

        try:
            self.state = FanOutState.WARMING_UP
            logger.info(
                f"Warm-up render of chunk {warm_up.chunk_index}",
                extra={"chunk_index": warm_up.chunk_index},
            )
            first = await self.render(warm_up)
            self.produced.append(first)
            tagged = [(warm_up.chunk_index, first)]

            if rest:
                self.state = FanOutState.FANNING_OUT
                logger.info(
                    f"Fanning out {len(rest)} chunks (max {self.max_concurrency} concurrent)",
                    extra={"chunk_count": len(rest)},
                )
                tagged.extend(await self._fan_out(rest))

            self.state = FanOutState.COLLECTING
            tagged.sort(key=lambda pair: pair[0])
            results = [result for _, result in tagged]
        except BaseException:
            self.state = FanOutState.FAILED
            raise

        self.state = FanOutState.DONE
        return results
