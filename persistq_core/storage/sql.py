"""PersistQ SQL Backend - SQLite Persistence.

Each queue name maps to one SQLite database file in the storage
directory; each item type gets its own table inside that file
("QueueItem" or "FilterQueueItem"). Ids come from AUTOINCREMENT, so
they are never reused and grow with insertion order.

The backend performs no locking of its own: the owning queue engine
serializes access. Opening the same file from several processes is
not supported.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Tuple, Type, Union

from persistq_core.errors import StorageError
from persistq_core.storage.backend import ItemQuery, StorageBackend

if TYPE_CHECKING:
    from persistq_core.queue.item import QueueItem

logger = logging.getLogger(__name__)

DB_SUFFIX = ".db"
_SIDE_FILES = ("-journal", "-wal", "-shm")

_COLUMN_TYPES = {
    "payload": "BLOB NOT NULL",
    "invisible_until": "REAL NOT NULL",
    "created_at": "REAL NOT NULL",
    "deleted_at": "REAL",
}


def storage_path(storage_dir: Union[str, Path], name: str) -> Path:
    """Database file used for a queue name."""
    return Path(storage_dir) / f"{name}{DB_SUFFIX}"


def remove_storage(path: Union[str, Path]) -> bool:
    """Delete a database file and its journal files.

    Returns:
        True if the main file existed
    """
    path = Path(path)
    existed = path.exists()
    for candidate in [path] + [Path(f"{path}{suffix}") for suffix in _SIDE_FILES]:
        try:
            candidate.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot remove {candidate}: {e}") from e
    return existed


class SQLiteBackend(StorageBackend):
    """SQLite storage backend."""

    def __init__(
        self,
        path: Union[str, Path],
        item_type: Type[QueueItem],
        queue_name: str,
        reset: bool = False,
    ):
        super().__init__(item_type, queue_name)
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db(reset)

    @property
    def table(self) -> str:
        return self.item_type.table

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        if self._conn is None:
            raise StorageError(f"Cannot {action}: store is closed", queue_name=self.queue_name)
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as e:
            raise StorageError(f"Cannot {action}: {e}", queue_name=self.queue_name) from e

    def _init_db(self, reset: bool) -> None:
        """Open the database and create the item table.

        A reset drops only this item type's table; other tables in the
        same file belong to other queue kinds and are left alone.
        """
        columns = ", ".join(
            f'"{name}" {_COLUMN_TYPES[name]}' for name in self.item_type.columns()
        )
        try:
            os.makedirs(self.path.parent, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open {self.path}: {e}", queue_name=self.queue_name) from e
        self._conn.row_factory = sqlite3.Row

        with self._guard("initialize schema") as conn:
            if reset:
                conn.execute(f'DROP TABLE IF EXISTS "{self.table}"')
            conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{self.table}" '
                f'("id" INTEGER PRIMARY KEY AUTOINCREMENT, {columns})'
            )
            conn.execute(
                f'CREATE INDEX IF NOT EXISTS "idx_{self.table}_invisible_until" '
                f'ON "{self.table}" ("invisible_until")'
            )
            if self.item_type.soft_delete:
                conn.execute(
                    f'CREATE INDEX IF NOT EXISTS "idx_{self.table}_created_at" '
                    f'ON "{self.table}" ("created_at")'
                )
        if reset:
            logger.info(f"Reset table {self.table} in {self.path} for queue {self.queue_name}")
        logger.debug(f"Opened {self.path} table {self.table}")

    def _where(self, query: ItemQuery) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if query.visible_at is not None:
            clauses.append('"invisible_until" <= ?')
            params.append(query.visible_at)
        if query.deleted is not None:
            if self.item_type.soft_delete:
                clauses.append('"deleted_at" IS NOT NULL' if query.deleted else '"deleted_at" IS NULL')
            elif query.deleted:
                clauses.append("0")
        if query.since is not None:
            if not self.item_type.soft_delete:
                raise ValueError(f"{self.table} has no created_at column")
            clauses.append('"created_at" >= ?')
            params.append(query.since)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def insert(self, item: QueueItem) -> int:
        row = item.to_row()
        names = ", ".join(f'"{name}"' for name in row)
        marks = ", ".join("?" for _ in row)
        with self._guard("insert item") as conn:
            cursor = conn.execute(
                f'INSERT INTO "{self.table}" ({names}) VALUES ({marks})',
                tuple(row.values()),
            )
            return cursor.lastrowid

    def _read_column(self, conn: sqlite3.Connection, item_id: int, column: str) -> Optional[Any]:
        row = conn.execute(
            f'SELECT "{column}" FROM "{self.table}" WHERE "id" = ?', (item_id,)
        ).fetchone()
        return None if row is None else row[0]

    def extend_invisibility(self, item_id: int, until: float) -> Optional[float]:
        with self._guard("extend invisibility") as conn:
            conn.execute(
                f'UPDATE "{self.table}" SET "invisible_until" = MAX("invisible_until", ?) '
                f'WHERE "id" = ?',
                (until, item_id),
            )
            return self._read_column(conn, item_id, "invisible_until")

    def mark_deleted(self, item_id: int, at: float) -> Optional[float]:
        if not self.item_type.soft_delete:
            raise ValueError(f"{self.table} has no deleted_at column")
        with self._guard("mark item deleted") as conn:
            conn.execute(
                f'UPDATE "{self.table}" SET "deleted_at" = ? '
                f'WHERE "id" = ? AND "deleted_at" IS NULL',
                (at, item_id),
            )
            return self._read_column(conn, item_id, "deleted_at")

    def delete(self, item_id: int) -> bool:
        with self._guard("delete item") as conn:
            cursor = conn.execute(f'DELETE FROM "{self.table}" WHERE "id" = ?', (item_id,))
            return cursor.rowcount > 0

    def scan(self, query: ItemQuery) -> List[QueueItem]:
        where, params = self._where(query)
        order = '"id"' if query.order_by == "id" else '"created_at", "id"'
        sql = f'SELECT * FROM "{self.table}"{where} ORDER BY {order}'
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)
        with self._guard("scan items") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self.item_type.from_row(row, queue_name=self.queue_name) for row in rows]

    def count(self, query: Optional[ItemQuery] = None) -> int:
        where, params = self._where(query or ItemQuery())
        with self._guard("count items") as conn:
            return conn.execute(f'SELECT COUNT(*) FROM "{self.table}"{where}', params).fetchone()[0]

    def delete_matching(self, query: ItemQuery) -> int:
        where, params = self._where(query)
        with self._guard("delete items") as conn:
            cursor = conn.execute(f'DELETE FROM "{self.table}"{where}', params)
            return cursor.rowcount

    def close(self) -> None:
        if self._conn is None:
            logger.warning(f"Store {self.path} already closed")
            return
        try:
            self._conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot close {self.path}: {e}", queue_name=self.queue_name) from e
        finally:
            self._conn = None
        logger.debug(f"Closed {self.path}")

    def destroy(self) -> None:
        if self._conn is not None:
            self.close()
        remove_storage(self.path)
        logger.info(f"Removed storage {self.path}")


__all__ = ["SQLiteBackend", "storage_path", "remove_storage"]
