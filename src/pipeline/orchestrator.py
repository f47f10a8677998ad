# ========================
# src/pipeline/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Wires the row source, validator, dedup gate, batch accumulator, insert worker,
aggregator and report generator into one import run.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Optional

from ..utils.config import Config
from ..utils.performance_monitor import monitor_performance
from .aggregation import IngestAggregator
from .batching import BatchAccumulator, BatchGate, BatchSizer
from .cleaning import RowValidator
from .dedup import DedupGate
from .errors import ImportInputError, StreamReadError
from .ingestion import CSVRowSource, FlowControl, open_upload
from .insertion import InsertWorker
from .records import Batch
from .reporting import ImportReport, ReportGenerator

logger = logging.getLogger(__name__)


class ContactImportPipeline:
    """
    Imports a CSV of contacts into one list.
    Coordinates streaming, batching, inserting and reporting.
    """

    def __init__(self,
                 store,
                 list_id: str,
                 config: Optional[Config] = None,
                 report_generator: Optional[ReportGenerator] = None):
        """
        Initialize the import pipeline.

        Args:
            store (ListStore): Contact store to import into
            list_id (str): Target list id
            config (Config): Configuration object
            report_generator (ReportGenerator): Report renderer
        """
        self.store = store
        self.list_id = list_id
        self.config = config or Config()
        self.report_generator = report_generator or ReportGenerator()

    async def run(self, stream: BinaryIO) -> ImportReport:
        """
        Execute one import from start to finish.

        Args:
            stream: Binary CSV stream with a header row

        Returns:
            ImportReport: Stats, rejections and the rendered CSV report

        Raises:
            ImportInputError: If the target list does not exist
            StreamReadError: If the input cannot be read as CSV
        """
        contact_list = await self.store.find_list(self.list_id)
        if contact_list is None:
            raise ImportInputError("No list found with that ID")

        logger.info(f"Starting import into list {contact_list.id} ('{contact_list.title}')...")

        flow = FlowControl()
        source = CSVRowSource(stream, flow=flow)
        aggregator = IngestAggregator()
        gate = BatchGate(flow, cap=self.config.MAX_ACTIVE_BATCHES)
        sizer = BatchSizer(
            initial=self.config.INITIAL_BATCH_SIZE,
            maximum=self.config.MAX_BATCH_SIZE,
            growth_factor=self.config.BATCH_GROWTH_FACTOR,
        )
        validator = RowValidator(contact_list.id, contact_list.defaults)
        worker = InsertWorker(self.store, validator, DedupGate(self.store), aggregator)

        with monitor_performance("Contact import", log_interval=self.config.LOG_PROGRESS_INTERVAL) as monitor:

            async def process(batch: Batch) -> None:
                await worker.process(batch)
                monitor.update_progress(len(batch))

            accumulator = BatchAccumulator(process, aggregator, gate, sizer)
            try:
                async for row in source.rows():
                    await accumulator.add(row)
            except StreamReadError as e:
                logger.error(f"Import into list {contact_list.id} aborted: {e}")
                # No cancellation: batches already dispatched run to completion
                await accumulator.drain()
                raise

            await accumulator.flush()
            aggregator.close_intake()
            await aggregator.wait_until_settled()
            await accumulator.drain()

        total_in_list = await self.store.count_by_list(contact_list.id)
        stats = aggregator.finalize(total_in_list)
        report = self.report_generator.build(stats, source.fieldnames, aggregator.rejections)
        report.extra.update({
            'batches': accumulator.batches_emitted,
            'failed_batches': worker.failed_batches,
            'peak_active_batches': gate.peak_active,
            'source_pauses': flow.pause_count,
            'rejections_by_reason': aggregator.rejection_counts(),
        })
        self._log_final_summary(report)
        return report

    async def run_file(self, input_file: str) -> ImportReport:
        """Run the import over a CSV file on disk."""
        if not input_file or not Path(input_file).is_file():
            raise ImportInputError("Please provide the csv file for the users")
        with open_upload(input_file) as stream:
            return await self.run(stream)

    def _log_final_summary(self, report: ImportReport) -> None:
        summary = report.summary()
        logger.info("="*60)
        logger.info("IMPORT SUMMARY")
        logger.info("="*60)
        logger.info(f"List: {self.list_id}")
        logger.info(f"Rows seen: {summary['rows_seen']:,}")
        logger.info(f"Added: {summary['added']:,}")
        logger.info(f"Not added: {summary['not_added']:,}")
        logger.info(f"Total in list: {summary['total_in_list']:,}")
        logger.info(f"Batches: {summary['batches']} ({summary['failed_batches']} failed)")
        for reason, count in summary['rejections_by_reason'].items():
            logger.info(f"  • {reason}: {count}")
        logger.info("="*60)
