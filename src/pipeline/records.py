# ========================
# src/pipeline/records.py
# ========================

"""
Import Data Model

Value types that flow through the import pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping

RawRow = Dict[str, str]


class RejectReason(str, Enum):
    """Why a row did not make it into the list."""
    MISSING_NAME = "missing-name"
    INVALID_EMAIL = "invalid-email"
    DUPLICATE = "duplicate"
    PERSISTENCE_FAILURE = "persistence-failure"


@dataclass(frozen=True)
class NormalizedRecord:
    """A validated row merged with its list defaults, ready to be inserted."""
    fields: Mapping[str, str]
    list_id: str
    subscribed: bool = True

    @property
    def email(self) -> str:
        return self.fields.get('email', '')

    def to_document(self) -> Dict[str, Any]:
        """Flatten into the document shape stored for a subscriber."""
        document: Dict[str, Any] = dict(self.fields)
        document['subscribed'] = self.subscribed
        document['list_id'] = self.list_id
        return document


@dataclass(frozen=True)
class RejectionRecord:
    """A row that failed validation, dedup or persistence."""
    fields: Mapping[str, Any]
    reason: RejectReason

    def to_report_row(self) -> Dict[str, Any]:
        row = dict(self.fields)
        row['error'] = self.reason.value
        return row


@dataclass
class Batch:
    """Rows admitted together. `generation` is bookkeeping for the sizing policy."""
    generation: int
    rows: List[RawRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class RunStats:
    """Final counts of one import run."""
    rows_seen: int
    rejected: int
    total_in_list: int

    @property
    def added(self) -> int:
        return self.rows_seen - self.rejected

    @property
    def not_added(self) -> int:
        return self.rejected
