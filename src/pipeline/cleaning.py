# ========================
# src/pipeline/cleaning.py
# ========================

"""
Row Validation Module

Classifies raw CSV rows as insertable subscribers or rejections, and fills
empty columns from the target list's defaults.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from email_validator import EmailNotValidError, validate_email

from .records import NormalizedRecord, RawRow, RejectReason, RejectionRecord

logger = logging.getLogger(__name__)


def is_valid_email(value: Any) -> bool:
    """Syntactic email check (no DNS lookups)."""
    if not isinstance(value, str) or not value:
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate_row(row: RawRow, list_id: str,
                 defaults: Optional[Mapping[str, str]] = None) -> Union[NormalizedRecord, RejectionRecord]:
    """
    Validate a single row and build the record to insert.

    Rules are applied in order and the first failing one wins:
      1. `name` absent or blank -> missing-name
      2. `email` absent or not an email address -> invalid-email
      3. otherwise every empty column takes the list default for that column

    Args:
        row (dict): Raw row keyed by column name
        list_id (str): Id of the list the row is imported into
        defaults (dict): List defaults, keyed by column name

    Returns:
        NormalizedRecord or RejectionRecord
    """
    name = row.get('name')
    if not name or not name.strip():
        return RejectionRecord(fields=dict(row), reason=RejectReason.MISSING_NAME)

    if not is_valid_email(row.get('email')):
        return RejectionRecord(fields=dict(row), reason=RejectReason.INVALID_EMAIL)

    defaults = defaults or {}
    fields: Dict[str, str] = {}
    for column, value in row.items():
        if not value and column in defaults:
            fields[column] = defaults[column]
        else:
            fields[column] = value

    return NormalizedRecord(fields=fields, list_id=list_id, subscribed=True)


class RowValidator:
    """
    Validates rows against one target list and keeps simple counters.
    """

    def __init__(self, list_id: str, defaults: Optional[Mapping[str, str]] = None):
        """
        Initialize the validator.

        Args:
            list_id (str): Id of the target list
            defaults (dict): Default column values of the target list
        """
        self.list_id = list_id
        self.defaults = dict(defaults or {})
        self.records_processed = 0
        self.records_rejected = 0
        logger.debug(f"RowValidator initialized for list {list_id}")

    def validate(self, row: RawRow) -> Union[NormalizedRecord, RejectionRecord]:
        self.records_processed += 1
        result = validate_row(row, self.list_id, self.defaults)
        if isinstance(result, RejectionRecord):
            self.records_rejected += 1
            logger.debug(f"Row rejected ({result.reason.value}): {row}")
        return result

    def get_statistics(self) -> Dict[str, float]:
        """Get validation statistics."""
        return {
            'records_processed': self.records_processed,
            'records_rejected': self.records_rejected,
            'records_valid': self.records_processed - self.records_rejected,
            'success_rate': (self.records_processed - self.records_rejected) / self.records_processed * 100 if self.records_processed > 0 else 0
        }
