"""Wave-based batch execution for independent model calls.

Runs work units in fixed-size waves: every unit of a wave is dispatched
together, and the next wave starts only after the whole wave has settled.
Results come back in submission order regardless of completion timing.

Example:
    executor = BatchExecutor(concurrency=2)
    results = await executor.run(
        units,
        execute=call_for_unit,
        on_progress=lambda event: print(f"{event.completed}/{event.total}"),
        cancel_token=token,
    )
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, Optional, TypeVar

from .models import CancellationToken, ProgressCallback, ProgressEvent, Stage

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BatchExecutor(Generic[T, R]):
    """Execute async work units in bounded waves.

    A failure in any unit fails the whole batch: the remaining calls of
    that wave are cancelled and no further waves are dispatched. Callers
    that need per-unit fault tolerance should wrap ``execute``.

    Cancellation is checked before each wave and again after a wave
    settles, before its results are recorded. Calls already in flight are
    never interrupted by the token.
    """

    def __init__(self, concurrency: int, *, name: str = "") -> None:
        """Initialize the executor.

        Args:
            concurrency: Units per wave (1-4 suits rate-limited free
                endpoints, higher values suit authenticated ones)
            name: Optional name for logging

        Raises:
            ValueError: If concurrency < 1
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self.name = name

    def wave_count(self, unit_count: int) -> int:
        """Number of waves needed for ``unit_count`` units."""
        return -(-unit_count // self.concurrency)

    async def run(
        self,
        units: Sequence[T],
        execute: Callable[[T], Awaitable[R]],
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        stage: Stage = Stage.PROCESSING,
    ) -> list[R]:
        """Run every unit through ``execute`` and return results in input order.

        Args:
            units: Work units to execute
            execute: Async function issuing one call per unit
            on_progress: Called once after each wave with the running count
            cancel_token: Cooperative cancellation flag
            stage: Stage reported in progress events and cancellation errors

        Returns:
            One result per unit, in the order of ``units``

        Raises:
            PipelineCancelledError: If the token is set at a wave boundary
            Exception: The first failure raised by ``execute``, unchanged
        """
        total = len(units)
        results: list[R] = []
        completed = 0
        start = time.monotonic()

        for wave_index, offset in enumerate(range(0, total, self.concurrency)):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage=stage, completed=completed, total=total)

            wave = units[offset : offset + self.concurrency]
            wave_results = await self._run_wave(wave, execute)

            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage=stage, completed=completed, total=total)

            results.extend(wave_results)
            completed += len(wave)
            logger.debug(
                f"{self.name or stage.value}: wave {wave_index + 1}/{self.wave_count(total)} "
                f"done ({completed}/{total})"
            )
            if on_progress is not None:
                on_progress(ProgressEvent(completed=completed, total=total, stage=stage))

        logger.debug(
            f"{self.name or stage.value}: {total} units in {time.monotonic() - start:.2f}s"
        )
        return results

    async def _run_wave(
        self,
        wave: Sequence[T],
        execute: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        tasks = [asyncio.ensure_future(execute(unit)) for unit in wave]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Cancel the rest of the wave on failure
            for task in tasks:
                if not task.done():
                    task.cancel()
                elif not task.cancelled():
                    task.exception()  # mark sibling failures as retrieved
            raise
