# ========================
# src/pipeline/insertion.py
# ========================

"""
Insert Worker

Runs one batch end to end: validation, dedup pre-check, then an unordered bulk
insert. Failures never leave this module: a refused record or a failed batch is
recorded as rejections and the run carries on.
"""

import asyncio
import logging
from typing import List, Sequence, Tuple

from ..store.base import DUPLICATE_KEY
from .aggregation import IngestAggregator
from .cleaning import RowValidator
from .dedup import DedupGate
from .records import Batch, NormalizedRecord, RawRow, RejectReason, RejectionRecord

logger = logging.getLogger(__name__)


class InsertWorker:
    """
    Persists batches for one import run.
    """

    def __init__(self, store, validator: RowValidator, dedup: DedupGate, aggregator: IngestAggregator):
        """
        Initialize the worker.

        Args:
            store (ListStore): Target contact store
            validator (RowValidator): Validator bound to the target list
            dedup (DedupGate): Duplicate pre-check
            aggregator (IngestAggregator): Shared run aggregator
        """
        self.store = store
        self.validator = validator
        self.dedup = dedup
        self.aggregator = aggregator
        self.records_inserted = 0
        self.failed_batches = 0

    async def process(self, batch: Batch) -> None:
        """Validate, dedup and insert every row of a batch."""
        candidates: List[Tuple[RawRow, NormalizedRecord]] = []
        for row in batch.rows:
            result = self.validator.validate(row)
            if isinstance(result, RejectionRecord):
                self.aggregator.add_rejection(result)
            else:
                candidates.append((row, result))

        admitted = await asyncio.gather(*(self._admit(row, record) for row, record in candidates))
        records = [record for (_, record), ok in zip(candidates, admitted) if ok]

        if records:
            await self.insert_batch(records, generation=batch.generation)

    async def insert_batch(self, records: Sequence[NormalizedRecord], generation: int = 0) -> None:
        """
        Bulk insert records without ordering, so one refusal doesn't block the rest.

        Args:
            records: Records that passed validation and the dedup pre-check
            generation (int): Batch number, for log messages
        """
        try:
            result = await self.store.bulk_insert(records, ordered=False)
        except Exception as e:
            self.failed_batches += 1
            logger.error(f"Batch {generation}: bulk insert of {len(records)} records failed: {e}", exc_info=True)
            for record in records:
                self.aggregator.reject(record.to_document(), RejectReason.PERSISTENCE_FAILURE)
            return

        for error in result.errors:
            reason = RejectReason.DUPLICATE if error.code == DUPLICATE_KEY else RejectReason.PERSISTENCE_FAILURE
            logger.debug(f"Batch {generation}: record {error.index} refused ({error.code}): {error.message}")
            self.aggregator.reject(records[error.index].to_document(), reason)

        self.records_inserted += result.inserted_count
        logger.debug(f"Batch {generation}: inserted {result.inserted_count}/{len(records)} records")

    async def _admit(self, row: RawRow, record: NormalizedRecord) -> bool:
        try:
            duplicate = await self.dedup.is_duplicate(record)
        except Exception as e:
            logger.warning(f"Duplicate check failed for {record.email}: {e}")
            self.aggregator.reject(record.to_document(), RejectReason.PERSISTENCE_FAILURE)
            return False

        if duplicate:
            self.aggregator.reject(row, RejectReason.DUPLICATE)
            return False
        return True
