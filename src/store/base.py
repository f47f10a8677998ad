# ========================
# src/store/base.py
# ========================

"""
Persistence Layer Interface

Defines the contract the import pipeline and the API use to talk to the
contact store: list lookup, per-email existence checks, unordered bulk
inserts and subscriber counts.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from ..pipeline.records import NormalizedRecord

# Per-record failure codes reported by bulk_insert
DUPLICATE_KEY = "duplicate"
WRITE_FAILED = "failed"


class StoreError(Exception):
    """Raised when the backing store cannot serve a request."""


def new_list_id() -> str:
    """Generate a list identifier (32 lowercase hex characters)."""
    return uuid.uuid4().hex


def is_list_id(value: str) -> bool:
    """Check that a value looks like a list identifier before hitting the store."""
    if not isinstance(value, str) or len(value) != 32:
        return False
    try:
        int(value, 16)
    except ValueError:
        return False
    return value == value.lower()


@dataclass(frozen=True)
class ContactList:
    """A subscriber list. Its defaults fill empty columns of imported rows."""
    id: str
    title: str
    defaults: Dict[str, str] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'defaults': dict(self.defaults),
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class RecordWriteError:
    """One record of a bulk insert that the store refused."""
    index: int
    code: str
    message: str = ""


@dataclass
class BulkInsertResult:
    """Outcome of an unordered bulk insert."""
    inserted_count: int = 0
    errors: List[RecordWriteError] = field(default_factory=list)


class ListStore(ABC):
    """
    Asynchronous contact store.

    Implementations must enforce uniqueness of (list id, email) at write time:
    the import pipeline relies on it as the authoritative duplicate check.
    """

    @abstractmethod
    async def create_list(self, title: str, defaults: Optional[Dict[str, str]] = None) -> ContactList:
        """Create and return a new list."""

    @abstractmethod
    async def get_lists(self, limit: int = 20, page: int = 1) -> List[ContactList]:
        """Return one page of lists, oldest first."""

    @abstractmethod
    async def find_list(self, list_id: str) -> Optional[ContactList]:
        """Return the list with the given id, or None."""

    @abstractmethod
    async def exists_by_email(self, email: str, list_id: str) -> bool:
        """Check whether the list already holds a subscriber with this email."""

    @abstractmethod
    async def bulk_insert(self, records: Sequence["NormalizedRecord"], ordered: bool = False) -> BulkInsertResult:
        """
        Insert records in one call.

        Args:
            records: Records to insert
            ordered: When False, a refused record does not stop the others

        Returns:
            BulkInsertResult: Insert count and per-record errors

        Raises:
            StoreError: If the batch as a whole could not be written
        """

    @abstractmethod
    async def count_by_list(self, list_id: str) -> int:
        """Return the number of subscribers in a list."""

    @abstractmethod
    async def find_subscribers(self, list_id: str, limit: Optional[int] = None, page: int = 1) -> List[Dict[str, Any]]:
        """Return subscriber documents of a list, in insertion order."""

    async def close(self) -> None:
        """Release resources held by the store."""
