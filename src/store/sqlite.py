# ========================
# src/store/sqlite.py
# ========================

"""
SQLite Contact Store

ListStore backed by a single SQLite file. Blocking sqlite3 calls run in worker
threads via `asyncio.to_thread`; a lock serializes access to the shared
connection. The UNIQUE(list_id, email) index is the authoritative duplicate
check for concurrent import batches.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .base import (
    DUPLICATE_KEY,
    WRITE_FAILED,
    BulkInsertResult,
    ContactList,
    ListStore,
    RecordWriteError,
    StoreError,
    new_list_id,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS lists (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    defaults TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS subscribers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    list_id TEXT NOT NULL REFERENCES lists(id),
    email TEXT NOT NULL,
    subscribed INTEGER NOT NULL DEFAULT 1,
    fields TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_subscribers_list_email ON subscribers(list_id, email);
"""


class SQLiteListStore(ListStore):
    """ListStore persisted in a SQLite database file."""

    def __init__(self, db_path: str = "data/contacts.db"):
        """
        Open (and create if needed) the database.

        Args:
            db_path (str): Database file path, or ":memory:"
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, timeout=30.0, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            try:
                self._conn.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.Error:
                logger.debug(f"Failed to enable WAL on {db_path}", exc_info=True)
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info(f"SQLiteListStore opened at {db_path}")

    async def _run(self, fn, *args):
        def locked():
            with self._lock:
                return fn(*args)
        try:
            return await asyncio.to_thread(locked)
        except sqlite3.Error as e:
            raise StoreError(f"SQLite error: {e}") from e

    @staticmethod
    def _to_list(row: sqlite3.Row) -> ContactList:
        return ContactList(
            id=row['id'],
            title=row['title'],
            defaults=json.loads(row['defaults']),
            created_at=row['created_at'],
        )

    async def create_list(self, title: str, defaults: Optional[Dict[str, str]] = None) -> ContactList:
        contact_list = ContactList(id=new_list_id(), title=title, defaults=dict(defaults or {}))

        def insert():
            self._conn.execute(
                "INSERT INTO lists (id, title, defaults, created_at) VALUES (?, ?, ?, ?)",
                (contact_list.id, contact_list.title, json.dumps(contact_list.defaults), contact_list.created_at),
            )
            self._conn.commit()

        await self._run(insert)
        logger.info(f"Created list {contact_list.id} ('{title}')")
        return contact_list

    async def get_lists(self, limit: int = 20, page: int = 1) -> List[ContactList]:
        def select():
            return self._conn.execute(
                "SELECT * FROM lists ORDER BY created_at, id LIMIT ? OFFSET ?",
                (limit, limit * (page - 1)),
            ).fetchall()

        return [self._to_list(row) for row in await self._run(select)]

    async def find_list(self, list_id: str) -> Optional[ContactList]:
        def select():
            return self._conn.execute("SELECT * FROM lists WHERE id = ?", (list_id,)).fetchone()

        row = await self._run(select)
        return self._to_list(row) if row else None

    async def exists_by_email(self, email: str, list_id: str) -> bool:
        def select():
            return self._conn.execute(
                "SELECT 1 FROM subscribers WHERE list_id = ? AND email = ? LIMIT 1",
                (list_id, email),
            ).fetchone()

        return await self._run(select) is not None

    async def bulk_insert(self, records, ordered: bool = False) -> BulkInsertResult:
        def insert_all() -> BulkInsertResult:
            result = BulkInsertResult()
            try:
                for index, record in enumerate(records):
                    document = record.to_document()
                    try:
                        self._conn.execute(
                            "INSERT INTO subscribers (list_id, email, subscribed, fields) VALUES (?, ?, ?, ?)",
                            (record.list_id, record.email, int(record.subscribed), json.dumps(dict(record.fields))),
                        )
                    except sqlite3.IntegrityError as e:
                        code = DUPLICATE_KEY if "UNIQUE" in str(e).upper() else WRITE_FAILED
                        result.errors.append(RecordWriteError(index=index, code=code, message=str(e)))
                        if ordered:
                            break
                        continue
                    result.inserted_count += 1
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
            return result

        return await self._run(insert_all)

    async def count_by_list(self, list_id: str) -> int:
        def select():
            return self._conn.execute(
                "SELECT COUNT(*) FROM subscribers WHERE list_id = ?", (list_id,)
            ).fetchone()[0]

        return int(await self._run(select))

    async def find_subscribers(self, list_id: str, limit: Optional[int] = None, page: int = 1) -> List[Dict[str, Any]]:
        def select():
            query = "SELECT * FROM subscribers WHERE list_id = ? ORDER BY id"
            params: Sequence[Any] = (list_id,)
            if limit is not None:
                query += " LIMIT ? OFFSET ?"
                params = (list_id, limit, limit * (page - 1))
            return self._conn.execute(query, params).fetchall()

        documents = []
        for row in await self._run(select):
            document = json.loads(row['fields'])
            document['subscribed'] = bool(row['subscribed'])
            document['list_id'] = row['list_id']
            documents.append(document)
        return documents

    async def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.debug(f"SQLiteListStore at {self.db_path} closed")
