# ========================
# src/pipeline/aggregation.py
# ========================

"""
Error and Stats Aggregation

Run-wide counters and the rejection list, shared by reference with every batch
task. Only monotonic counters and appends are used, so concurrent batches on
the event loop need no locking.
"""

import asyncio
import logging
from typing import Any, List, Mapping

from .records import RejectReason, RejectionRecord, RunStats

logger = logging.getLogger(__name__)


class IngestAggregator:
    """
    Accumulates rows seen, rejections and outstanding batches for one run.
    Final numbers are only readable once intake is closed and every
    dispatched batch has completed.
    """

    def __init__(self):
        self.rows_seen = 0
        self.rejections: List[RejectionRecord] = []
        self.outstanding_batches = 0
        self.completed_batches = 0
        self._intake_closed = False
        self._settled = asyncio.Event()

    def admit_batch(self, row_count: int) -> None:
        """Count a batch's rows as seen when it is dispatched."""
        if self._intake_closed:
            raise RuntimeError("Cannot admit a batch after intake was closed")
        self.rows_seen += row_count
        self.outstanding_batches += 1
        self._settled.clear()

    def reject(self, fields: Mapping[str, Any], reason: RejectReason) -> None:
        self.rejections.append(RejectionRecord(fields=dict(fields), reason=reason))

    def add_rejection(self, rejection: RejectionRecord) -> None:
        self.rejections.append(rejection)

    def complete_batch(self) -> None:
        self.outstanding_batches -= 1
        self.completed_batches += 1
        self._check_settled()

    def close_intake(self) -> None:
        """Mark end of stream: no more batches will be admitted."""
        self._intake_closed = True
        self._check_settled()

    @property
    def is_settled(self) -> bool:
        return self._intake_closed and self.outstanding_batches == 0

    async def wait_until_settled(self) -> None:
        await self._settled.wait()

    def finalize(self, total_in_list: int) -> RunStats:
        """
        Freeze the run's counts.

        Args:
            total_in_list (int): Authoritative subscriber count from the store

        Returns:
            RunStats: Final statistics

        Raises:
            RuntimeError: If batches are still outstanding or intake is open
        """
        if not self.is_settled:
            raise RuntimeError(
                f"Aggregation not settled: intake_closed={self._intake_closed}, "
                f"outstanding_batches={self.outstanding_batches}"
            )
        stats = RunStats(rows_seen=self.rows_seen, rejected=len(self.rejections), total_in_list=total_in_list)
        logger.info(
            f"Aggregation finalized: {stats.rows_seen} rows seen, {stats.added} added, "
            f"{stats.not_added} rejected over {self.completed_batches} batches"
        )
        return stats

    def rejection_counts(self) -> dict:
        """Count rejections per reason code."""
        counts = {reason.value: 0 for reason in RejectReason}
        for rejection in self.rejections:
            counts[rejection.reason.value] += 1
        return counts

    def _check_settled(self) -> None:
        if self.is_settled:
            self._settled.set()
