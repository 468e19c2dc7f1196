"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). All monetary values stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime, date, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager

from .errors import PersistenceError


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def _base_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @staticmethod
    def _encode(value: Any) -> Any:
        """Convert Decimal and date values to their string forms"""
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value


def _snapshot(data: Any) -> Any:
    """Deep copy through JSON so callers never share mutable state"""
    return json.loads(json.dumps(data, default=str))


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing.

    Transactions snapshot the whole dataset on begin and restore it on
    rollback; nested begin calls join the outer transaction.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None
        self._depth = 0
        self._rollback_only = False

    def _ensure_table(self, table: str) -> None:
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            self._data[table][record_id] = _snapshot(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                return _snapshot(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            return [_snapshot(record) for record in self._data[table].values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                del self._data[table][record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            return [
                _snapshot(record) for record in self._data[table].values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._data[table] = {}

    def begin_transaction(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = _snapshot(self._data)
            self._rollback_only = False
        self._depth += 1

    def commit(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth > 0:
            self._lock.release()
            return
        aborted = self._rollback_only
        if aborted and self._snapshot is not None:
            self._data = self._snapshot
        self._snapshot = None
        self._rollback_only = False
        self._lock.release()
        if aborted:
            raise PersistenceError("Transaction was rolled back by a nested block")

    def rollback(self) -> None:
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth > 0:
            # The outer block may swallow the error; it must not commit
            self._rollback_only = True
        elif self._snapshot is not None:
            self._data = self._snapshot
            self._snapshot = None
            self._rollback_only = False
        self._lock.release()

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._depth = 0
        self._rollback_only = False
        self._tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            if not self._in_transaction:
                self._connection.commit()
            self._tables.add(table)

    def _commit_unless_in_transaction(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)

            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)

            # INSERT OR REPLACE keeps the original created_at
            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))
            self._commit_unless_in_transaction()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            )
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"SELECT data FROM {table} ORDER BY created_at"
            )
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"DELETE FROM {table} WHERE id = ?", (record_id,)
            )
            self._commit_unless_in_transaction()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)
            )
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"SELECT COUNT(*) as count FROM {table}"
            )
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._commit_unless_in_transaction()

    def begin_transaction(self) -> None:
        self._lock.acquire()
        # isolation_level='DEFERRED' opens the transaction on the first write
        if self._depth == 0:
            self._rollback_only = False
        self._depth += 1
        self._in_transaction = True

    def commit(self) -> None:
        if not self._in_transaction:
            return
        self._depth -= 1
        if self._depth > 0:
            self._lock.release()
            return
        aborted = self._rollback_only
        if aborted:
            self._connection.rollback()
        else:
            self._connection.commit()
        self._in_transaction = False
        self._rollback_only = False
        self._lock.release()
        if aborted:
            raise PersistenceError("Transaction was rolled back by a nested block")

    def rollback(self) -> None:
        if not self._in_transaction:
            return
        self._depth -= 1
        if self._depth > 0:
            self._rollback_only = True
        else:
            self._connection.rollback()
            self._in_transaction = False
            self._rollback_only = False
        self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(use_sqlite: bool = False, db_path: str = ":memory:") -> StorageInterface:
    """Build the configured storage backend"""
    if use_sqlite:
        return SQLiteStorage(db_path)
    return InMemoryStorage()
