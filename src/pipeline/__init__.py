# ========================
# src/pipeline/__init__.py
# ========================

"""
Contact Import Pipeline Package

Core components of the streaming batch import:
- ingestion: CSV row source with pause/resume flow control
- cleaning: Row validation and default filling
- dedup: Duplicate pre-check against the store
- batching: Adaptive batch sizing and backpressure
- insertion: Per-batch insert worker with failure isolation
- aggregation: Run-wide counters and rejections
- reporting: CSV report rendering
- orchestrator: Import coordination
"""

from .aggregation import IngestAggregator
from .batching import BatchAccumulator, BatchGate, BatchSizer
from .cleaning import RowValidator, is_valid_email, validate_row
from .dedup import DedupGate
from .errors import ImportInputError, PipelineError, StreamReadError
from .ingestion import CSVRowSource, FlowControl
from .insertion import InsertWorker
from .orchestrator import ContactImportPipeline
from .records import Batch, NormalizedRecord, RejectReason, RejectionRecord, RunStats
from .reporting import ImportReport, ReportGenerator

__all__ = [
    'Batch',
    'BatchAccumulator',
    'BatchGate',
    'BatchSizer',
    'CSVRowSource',
    'ContactImportPipeline',
    'DedupGate',
    'FlowControl',
    'ImportInputError',
    'ImportReport',
    'IngestAggregator',
    'InsertWorker',
    'NormalizedRecord',
    'PipelineError',
    'RejectReason',
    'RejectionRecord',
    'ReportGenerator',
    'RowValidator',
    'RunStats',
    'StreamReadError',
    'is_valid_email',
    'validate_row',
]

__version__ = "1.0.0"
