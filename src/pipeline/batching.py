# ========================
# src/pipeline/batching.py
# ========================

"""
Batching and Backpressure

Groups rows into batches whose size grows as the import proves long-running,
dispatches each batch as its own asyncio task, and pauses the row source while
too many batches are in flight.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from .aggregation import IngestAggregator
from .ingestion import FlowControl
from .records import Batch, RawRow

logger = logging.getLogger(__name__)


class BatchSizer:
    """
    Adaptive batch size policy.

    Starts at `initial`; every emitted batch multiplies the threshold for the
    next one by `growth_factor`, never above `maximum`. Growth ignores batch
    outcomes.
    """

    def __init__(self, initial: int = 10, maximum: int = 300, growth_factor: int = 2):
        if initial < 1 or maximum < initial or growth_factor < 1:
            raise ValueError(
                f"Invalid batch sizing: initial={initial}, maximum={maximum}, growth_factor={growth_factor}"
            )
        self.initial = initial
        self.maximum = maximum
        self.growth_factor = growth_factor
        self.threshold = initial
        self.generation = 0

    def advance(self) -> int:
        """Record an emitted batch and return the next threshold."""
        self.generation += 1
        self.threshold = min(self.threshold * self.growth_factor, self.maximum)
        return self.threshold


class BatchGate:
    """
    Counts batches in flight and drives the source's flow control.

    The source is paused once `cap` batches are active and resumed as soon as
    one of them finishes, so no more than `cap` batches run at once.
    """

    def __init__(self, flow: FlowControl, cap: int = 6):
        if cap < 1:
            raise ValueError(f"Concurrency cap must be positive, got {cap}")
        self.flow = flow
        self.cap = cap
        self.active_batches = 0
        self.peak_active = 0

    def on_dispatch(self) -> None:
        self.active_batches += 1
        self.peak_active = max(self.peak_active, self.active_batches)
        if self.active_batches >= self.cap:
            self.flow.pause()

    def on_complete(self) -> None:
        self.active_batches -= 1
        if self.flow.is_paused() and self.active_batches < self.cap:
            self.flow.resume()


class BatchAccumulator:
    """
    Buffers rows into the current batch and hands full batches to `process`.
    Nothing is dropped: `flush()` emits whatever is left at end of input.
    """

    def __init__(self,
                 process: Callable[[Batch], Awaitable[None]],
                 aggregator: IngestAggregator,
                 gate: BatchGate,
                 sizer: Optional[BatchSizer] = None):
        """
        Initialize the accumulator.

        Args:
            process: Coroutine function run once per emitted batch
            aggregator (IngestAggregator): Run-wide counters and rejections
            gate (BatchGate): In-flight batch counter / backpressure
            sizer (BatchSizer): Batch size policy, defaults to 10 doubling to 300
        """
        self.process = process
        self.aggregator = aggregator
        self.gate = gate
        self.sizer = sizer or BatchSizer()
        self.batches_emitted = 0
        self._current = Batch(generation=self.sizer.generation)
        self._tasks: Set[asyncio.Task] = set()
        self._task_errors: List[BaseException] = []

    async def add(self, row: RawRow) -> None:
        self._current.rows.append(row)
        if len(self._current) >= self.sizer.threshold:
            await self._emit()

    async def flush(self) -> None:
        """Emit the trailing partial batch, if any."""
        if len(self._current) > 0:
            await self._emit()

    async def drain(self) -> None:
        """Wait for every dispatched batch task and surface unexpected errors."""
        if self._tasks:
            await asyncio.wait(set(self._tasks))
        if self._task_errors:
            raise self._task_errors[0]

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def _emit(self) -> None:
        batch = self._current
        self.sizer.advance()
        self._current = Batch(generation=self.sizer.generation)

        self.aggregator.admit_batch(len(batch))
        self.gate.on_dispatch()
        self.batches_emitted += 1
        logger.debug(
            f"Dispatching batch {batch.generation} with {len(batch)} rows "
            f"({self.gate.active_batches} active, next size {self.sizer.threshold})"
        )

        task = asyncio.create_task(self._run(batch))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        # Let the new task start before more rows are read
        await asyncio.sleep(0)

    async def _run(self, batch: Batch) -> None:
        try:
            await self.process(batch)
        finally:
            self.gate.on_complete()
            self.aggregator.complete_batch()

    def _on_task_done(self, task: asyncio.Task) -> None:
        # Finished tasks are dropped so the set only holds batches in flight
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Batch task failed unexpectedly: {error!r}")
            self._task_errors.append(error)
