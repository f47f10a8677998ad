# ========================
# src/store/memory.py
# ========================

"""
In-Memory Contact Store

Dictionary-backed ListStore used by tests, the load-test script and
`STORE_BACKEND=memory`. Uniqueness of (list id, email) is enforced on insert.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .base import (
    DUPLICATE_KEY,
    BulkInsertResult,
    ContactList,
    ListStore,
    RecordWriteError,
    new_list_id,
)

logger = logging.getLogger(__name__)


class InMemoryListStore(ListStore):
    """ListStore kept entirely in process memory."""

    def __init__(self):
        self.lists: Dict[str, ContactList] = {}
        self.subscribers: List[Dict[str, Any]] = []
        self._emails: Set[Tuple[str, str]] = set()
        logger.debug("InMemoryListStore initialized")

    async def create_list(self, title: str, defaults: Optional[Dict[str, str]] = None) -> ContactList:
        contact_list = ContactList(id=new_list_id(), title=title, defaults=dict(defaults or {}))
        self.lists[contact_list.id] = contact_list
        logger.info(f"Created list {contact_list.id} ('{title}')")
        return contact_list

    async def get_lists(self, limit: int = 20, page: int = 1) -> List[ContactList]:
        start = limit * (page - 1)
        return list(self.lists.values())[start:start + limit]

    async def find_list(self, list_id: str) -> Optional[ContactList]:
        return self.lists.get(list_id)

    async def exists_by_email(self, email: str, list_id: str) -> bool:
        # Yield like a real driver round trip would
        await asyncio.sleep(0)
        return (list_id, email) in self._emails

    async def bulk_insert(self, records, ordered: bool = False) -> BulkInsertResult:
        await asyncio.sleep(0)
        result = BulkInsertResult()
        for index, record in enumerate(records):
            key = (record.list_id, record.email)
            if key in self._emails:
                result.errors.append(
                    RecordWriteError(index=index, code=DUPLICATE_KEY,
                                     message=f"duplicate email {record.email!r} in list {record.list_id}")
                )
                if ordered:
                    break
                continue
            self._emails.add(key)
            self.subscribers.append(record.to_document())
            result.inserted_count += 1
        return result

    async def count_by_list(self, list_id: str) -> int:
        return sum(1 for list_id_, _ in self._emails if list_id_ == list_id)

    async def find_subscribers(self, list_id: str, limit: Optional[int] = None, page: int = 1) -> List[Dict[str, Any]]:
        members = [doc for doc in self.subscribers if doc['list_id'] == list_id]
        if limit is None:
            return members
        start = limit * (page - 1)
        return members[start:start + limit]
