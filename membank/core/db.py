"""
SQLite persistence for memory records and custom banks.

The store is opened lazily: the first caller runs the schema migration and
every caller arriving while it is in flight awaits the same open. A failed
open is forgotten so the next call retries from scratch. Each operation uses
its own short-lived connection off the event loop, so a failing operation
never affects the opened state.
"""

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from typing import Callable, Generator, List, Optional, TypeVar

from .config import DB_PATH, SCHEMA_VERSION, ensure_db_directory
from .schema import MemoryRecord, NamedBank
from ..util.logging import logger

T = TypeVar("T")

MEMORIES_TABLE = "memories"
CUSTOM_BANKS_TABLE = "custom_banks"
BANK_INDEX = "idx_memories_bank"


class StoreError(Exception):
    """Base class for persistent store failures."""


class StoreOpenError(StoreError):
    """Raised when the store cannot be opened or migrated."""


class StoreOperationError(StoreError):
    """Raised when a single store operation fails."""


def _row_to_record(row) -> MemoryRecord:
    record_id, text, embedding, bank, position = row
    return MemoryRecord(
        id=record_id,
        text=text,
        embedding=json.loads(embedding),
        bank=bank,
        position=position,
    )


class MemoryStore:
    """Key-value style access to the `memories` and `custom_banks` tables."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or DB_PATH
        self._opened = False
        self._open_task: Optional[asyncio.Future] = None

    @contextmanager
    def get_db(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite database connection."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    @property
    def is_open(self) -> bool:
        return self._opened

    async def ensure_open(self) -> None:
        """Open the store once; concurrent callers share the in-flight open."""
        if self._opened:
            return
        if self._open_task is None:
            self._open_task = asyncio.ensure_future(self._open())
        await asyncio.shield(self._open_task)

    async def _open(self) -> None:
        try:
            await asyncio.to_thread(self._migrate)
        except Exception as e:
            self._open_task = None
            logger.log_store_operation("open", "failed", {"db_path": self.db_path, "error": str(e)})
            raise StoreOpenError(f"Error opening database: {e}") from e
        self._opened = True
        logger.log_operation("store.open", "success", {"db_path": self.db_path, "schema_version": SCHEMA_VERSION})

    def _migrate(self) -> None:
        """Bring the schema up to SCHEMA_VERSION. Safe to run repeatedly."""
        ensure_db_directory(self.db_path)
        with self.get_db() as conn:
            cursor = conn.cursor()

            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {MEMORIES_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    text TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    bank TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0
                )
            ''')

            # Tables from earlier schema versions lack the sequence column
            cursor.execute(f"PRAGMA table_info({MEMORIES_TABLE})")
            columns = [col[1] for col in cursor.fetchall()]
            if "position" not in columns:
                cursor.execute(f"ALTER TABLE {MEMORIES_TABLE} ADD COLUMN position INTEGER NOT NULL DEFAULT 0")

            # Only the bank index survives a migration
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ? AND sql IS NOT NULL",
                (MEMORIES_TABLE,)
            )
            for (index_name,) in cursor.fetchall():
                if index_name != BANK_INDEX:
                    cursor.execute(f'DROP INDEX IF EXISTS "{index_name}"')

            cursor.execute(f"CREATE INDEX IF NOT EXISTS {BANK_INDEX} ON {MEMORIES_TABLE}(bank)")

            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {CUSTOM_BANKS_TABLE} (
                    name TEXT PRIMARY KEY,
                    content TEXT NOT NULL
                )
            ''')

            cursor.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            conn.commit()

    async def _run(self, operation: str, fn: Callable[[sqlite3.Connection], T]) -> T:
        await self.ensure_open()

        def _execute() -> T:
            with self.get_db() as conn:
                result = fn(conn)
                conn.commit()
                return result

        try:
            result = await asyncio.to_thread(_execute)
        except sqlite3.Error as e:
            logger.log_store_operation(operation, "failed", {"error": str(e)})
            raise StoreOperationError(f"Error during {operation}: {e}") from e
        logger.log_store_operation(operation)
        return result

    # --- memory records ---

    async def put(self, record: MemoryRecord) -> int:
        """Insert a record and return its store-assigned id."""
        def _insert(conn):
            cursor = conn.execute(
                f"INSERT INTO {MEMORIES_TABLE} (text, embedding, bank, position) VALUES (?, ?, ?, ?)",
                (record.text, json.dumps([float(x) for x in record.embedding]), record.bank, record.position)
            )
            return cursor.lastrowid

        record_id = await self._run("put", _insert)
        record.id = record_id
        return record_id

    async def get(self, record_id: int) -> Optional[MemoryRecord]:
        def _query(conn):
            row = conn.execute(
                f"SELECT id, text, embedding, bank, position FROM {MEMORIES_TABLE} WHERE id = ?",
                (record_id,)
            ).fetchone()
            return _row_to_record(row) if row else None

        return await self._run("get", _query)

    async def get_all(self) -> List[MemoryRecord]:
        def _query(conn):
            rows = conn.execute(
                f"SELECT id, text, embedding, bank, position FROM {MEMORIES_TABLE} ORDER BY id"
            ).fetchall()
            return [_row_to_record(row) for row in rows]

        return await self._run("get_all", _query)

    async def delete(self, record_id: int) -> None:
        await self._run("delete", lambda conn: conn.execute(
            f"DELETE FROM {MEMORIES_TABLE} WHERE id = ?", (record_id,)
        ))

    async def get_by_bank(self, bank: str) -> List[MemoryRecord]:
        """Records of one bank in declared content order."""
        def _query(conn):
            rows = conn.execute(
                f"SELECT id, text, embedding, bank, position FROM {MEMORIES_TABLE} "
                "WHERE bank = ? ORDER BY position, id",
                (bank,)
            ).fetchall()
            return [_row_to_record(row) for row in rows]

        return await self._run("get_by_bank", _query)

    async def delete_by_bank(self, bank: str) -> int:
        """Delete every record of a bank. Returns the number of rows removed."""
        def _delete(conn):
            return conn.execute(f"DELETE FROM {MEMORIES_TABLE} WHERE bank = ?", (bank,)).rowcount

        return await self._run("delete_by_bank", _delete)

    async def clear_all(self) -> None:
        await self._run("clear_all", lambda conn: conn.execute(f"DELETE FROM {MEMORIES_TABLE}"))

    async def count(self) -> int:
        def _count(conn):
            return conn.execute(f"SELECT COUNT(*) FROM {MEMORIES_TABLE}").fetchone()[0]

        return await self._run("count", _count)

    # --- custom banks ---

    async def save_bank(self, bank: NamedBank) -> str:
        """Insert or replace a bank by name."""
        await self._run("save_bank", lambda conn: conn.execute(
            f"INSERT OR REPLACE INTO {CUSTOM_BANKS_TABLE} (name, content) VALUES (?, ?)",
            (bank.name, json.dumps(list(bank.content)))
        ))
        return bank.name

    async def get_bank(self, name: str) -> Optional[NamedBank]:
        def _query(conn):
            row = conn.execute(
                f"SELECT name, content FROM {CUSTOM_BANKS_TABLE} WHERE name = ?", (name,)
            ).fetchone()
            return NamedBank(name=row[0], content=json.loads(row[1])) if row else None

        return await self._run("get_bank", _query)

    async def list_bank_names(self) -> List[str]:
        def _query(conn):
            rows = conn.execute(f"SELECT name FROM {CUSTOM_BANKS_TABLE} ORDER BY name").fetchall()
            return [row[0] for row in rows]

        return await self._run("list_bank_names", _query)

    async def delete_bank(self, name: str) -> None:
        await self._run("delete_bank", lambda conn: conn.execute(
            f"DELETE FROM {CUSTOM_BANKS_TABLE} WHERE name = ?", (name,)
        ))

    async def health_check(self) -> bool:
        """Check that the schema is present."""
        try:
            tables = await self._run("health_check", lambda conn: [
                row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table';").fetchall()
            ])
        except StoreError:
            return False
        return all(table in tables for table in [MEMORIES_TABLE, CUSTOM_BANKS_TABLE])
