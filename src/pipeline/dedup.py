# ========================
# src/pipeline/dedup.py
# ========================

"""
Dedup Gate

Optimistic duplicate check run before a record joins an insert set. It is not
atomic with the insert; the store's unique index is the final word.
"""

import logging

from .records import NormalizedRecord

logger = logging.getLogger(__name__)


class DedupGate:
    """Asks the store whether a record's email is already in its list."""

    def __init__(self, store):
        self.store = store
        self.checks = 0
        self.hits = 0

    async def is_duplicate(self, record: NormalizedRecord) -> bool:
        self.checks += 1
        exists = await self.store.exists_by_email(record.email, record.list_id)
        if exists:
            self.hits += 1
            logger.debug(f"Email {record.email} already in list {record.list_id}")
        return exists
