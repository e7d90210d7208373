"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the local persistence backend because:
1. It ships with Python - no server to install on a personal device
2. INSERT OR REPLACE on a composite primary key gives us the
   (base, target, date) upsert semantics for free
3. WAL mode lets reads proceed while a refresh is writing

TRADEOFFS:
- sqlite3 is blocking, so every call is moved to a worker thread
- One shared connection, all access serialized with a lock

The implementation follows the abstract interface, so business logic
never sees SQL.
"""

import asyncio
import json
import sqlite3
import threading
from datetime import date, datetime
from typing import Callable, Optional, TypeVar
from uuid import UUID

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_tracker.config import get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.rates import CachedRate
from expense_tracker.models.transaction import ExpenseCategory, Transaction
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RateCacheStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


SCHEMA = """
    CREATE TABLE IF NOT EXISTS transactions (
        id          TEXT PRIMARY KEY,
        amount      REAL NOT NULL,
        currency    TEXT NOT NULL,
        category    TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        timestamp   TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_transactions_timestamp
        ON transactions (timestamp);

    CREATE TABLE IF NOT EXISTS exchange_rates (
        base_currency   TEXT NOT NULL,
        target_currency TEXT NOT NULL,
        rate            REAL NOT NULL,
        date            TEXT NOT NULL,
        last_fetched_at TEXT NOT NULL,
        PRIMARY KEY (base_currency, target_currency, date)
    );

    CREATE INDEX IF NOT EXISTS idx_exchange_rates_base_date
        ON exchange_rates (base_currency, date);

    CREATE TABLE IF NOT EXISTS audit_events (
        event_id       TEXT PRIMARY KEY,
        timestamp      TEXT NOT NULL,
        event_type     TEXT NOT NULL,
        severity       TEXT NOT NULL,
        entity_type    TEXT NOT NULL DEFAULT '',
        entity_id      TEXT NOT NULL DEFAULT '',
        correlation_id TEXT NOT NULL DEFAULT '',
        description    TEXT NOT NULL,
        details_json   TEXT NOT NULL DEFAULT '',
        error_code     TEXT NOT NULL DEFAULT '',
        error_message  TEXT NOT NULL DEFAULT '',
        is_user_action TEXT NOT NULL DEFAULT 'False'
    );
"""


class SQLiteDatabase:
    """
    Owns the SQLite connection and schema.

    Handles connection setup with retry (a locked database file is usually
    transient) and runs blocking calls on a worker thread.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or get_settings().storage.sqlite_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        reraise=True,
    )
    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
        conn.executescript(SCHEMA)
        conn.commit()
        return conn

    def connect(self) -> sqlite3.Connection:
        """Open the connection and create the schema if needed."""
        if self._conn is None:
            try:
                self._conn = self._open()
            except sqlite3.Error as e:
                raise ConnectionError(f"Failed to open SQLite database {self.path}: {e}")
            logger.debug("sqlite_connected", path=self.path)
        return self._conn

    def read(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            conn = self.connect()
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"SQLite read failed: {e}")

    def write(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run fn inside a transaction; commit on success, roll back on error."""
        with self._lock:
            conn = self.connect()
            try:
                with conn:
                    return fn(conn)
            except sqlite3.IntegrityError as e:
                raise DuplicateError(str(e))
            except sqlite3.Error as e:
                raise StorageError(f"SQLite write failed: {e}")

    async def run(self, fn: Callable[..., T], *args) -> T:
        return await asyncio.to_thread(fn, *args)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class SQLiteTransactionStorage(TransactionStorageInterface):
    """Transactions in the `transactions` table, one row per id."""

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    def _row_to_model(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            amount=row["amount"],
            currency=row["currency"],
            category=ExpenseCategory(row["category"]),
            description=row["description"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )

    def _model_to_params(self, transaction: Transaction) -> tuple:
        return (
            transaction.id,
            transaction.amount,
            transaction.currency,
            transaction.category.value,
            transaction.description,
            transaction.timestamp.isoformat(),
        )

    async def _select(self, where: str = "", params: tuple = ()) -> list[Transaction]:
        sql = "SELECT * FROM transactions"
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY timestamp DESC"
        rows = await self._db.run(self._db.read, sql, params)
        return [self._row_to_model(r) for r in rows]

    async def get_all(self) -> list[Transaction]:
        return await self._select()

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        found = await self._select("id = ?", (transaction_id,))
        return found[0] if found else None

    async def insert(self, transaction: Transaction) -> bool:
        params = self._model_to_params(transaction)
        await self._db.run(
            self._db.write,
            lambda conn: conn.execute(
                "INSERT INTO transactions VALUES (?, ?, ?, ?, ?, ?)", params
            ),
        )
        return True

    async def insert_many(self, transactions: list[Transaction]) -> int:
        rows = [self._model_to_params(t) for t in transactions]
        await self._db.run(
            self._db.write,
            lambda conn: conn.executemany(
                "INSERT INTO transactions VALUES (?, ?, ?, ?, ?, ?)", rows
            ),
        )
        return len(rows)

    async def update(self, transaction: Transaction) -> bool:
        tid, amount, currency, category, description, timestamp = (
            self._model_to_params(transaction)
        )
        cursor = await self._db.run(
            self._db.write,
            lambda conn: conn.execute(
                """
                UPDATE transactions
                SET amount = ?, currency = ?, category = ?, description = ?, timestamp = ?
                WHERE id = ?
                """,
                (amount, currency, category, description, timestamp, tid),
            ),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        return True

    async def delete(self, transaction_id: str) -> bool:
        cursor = await self._db.run(
            self._db.write,
            lambda conn: conn.execute(
                "DELETE FROM transactions WHERE id = ?", (transaction_id,)
            ),
        )
        return cursor.rowcount > 0

    async def count(self) -> int:
        rows = await self._db.run(self._db.read, "SELECT COUNT(*) FROM transactions")
        return rows[0][0]

    async def list_by_category(self, category: ExpenseCategory) -> list[Transaction]:
        return await self._select("category = ?", (category.value,))

    async def list_by_date_range(
        self,
        start: datetime,
        end: datetime,
    ) -> list[Transaction]:
        return await self._select(
            "timestamp >= ? AND timestamp <= ?",
            (start.isoformat(), end.isoformat()),
        )

    async def list_by_amount_range(
        self,
        min_amount: float,
        max_amount: float,
    ) -> list[Transaction]:
        return await self._select("amount >= ? AND amount <= ?", (min_amount, max_amount))


class SQLiteRateCacheStorage(RateCacheStorageInterface):
    """
    Cached rates in the `exchange_rates` table.

    (base_currency, target_currency, date) is the primary key, so
    INSERT OR REPLACE is an atomic last-writer-wins upsert.
    """

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    def _row_to_model(self, row: sqlite3.Row) -> CachedRate:
        return CachedRate(
            base_currency=row["base_currency"],
            target_currency=row["target_currency"],
            rate=row["rate"],
            date=date.fromisoformat(row["date"]),
            last_fetched_at=row["last_fetched_at"],
        )

    async def _query(self, sql: str, params: tuple = ()) -> list[CachedRate]:
        rows = await self._db.run(self._db.read, sql, params)
        return [self._row_to_model(r) for r in rows]

    async def get(
        self,
        base_currency: str,
        target_currency: str,
        on_date: Optional[date] = None,
    ) -> Optional[CachedRate]:
        found = await self._query(
            """
            SELECT * FROM exchange_rates
            WHERE base_currency = ?
            AND target_currency = ?
            AND (? IS NULL OR date = ?)
            ORDER BY date DESC
            LIMIT 1
            """,
            (
                base_currency,
                target_currency,
                on_date.isoformat() if on_date else None,
                on_date.isoformat() if on_date else None,
            ),
        )
        return found[0] if found else None

    async def upsert_many(self, rates: list[CachedRate]) -> int:
        rows = [
            (r.base_currency, r.target_currency, r.rate, r.date.isoformat(), r.last_fetched_at)
            for r in rates
        ]
        await self._db.run(
            self._db.write,
            lambda conn: conn.executemany(
                "INSERT OR REPLACE INTO exchange_rates VALUES (?, ?, ?, ?, ?)", rows
            ),
        )
        return len(rows)

    async def delete_older_than(self, cutoff: date) -> int:
        cursor = await self._db.run(
            self._db.write,
            lambda conn: conn.execute(
                "DELETE FROM exchange_rates WHERE date < ?", (cutoff.isoformat(),)
            ),
        )
        return cursor.rowcount

    async def distinct_base_currencies(self) -> list[str]:
        rows = await self._db.run(
            self._db.read,
            "SELECT DISTINCT base_currency FROM exchange_rates ORDER BY base_currency",
        )
        return [r[0] for r in rows]

    async def most_recent_by_base(self, base_currency: str) -> Optional[CachedRate]:
        found = await self._query(
            """
            SELECT * FROM exchange_rates
            WHERE base_currency = ?
            ORDER BY last_fetched_at DESC
            LIMIT 1
            """,
            (base_currency,),
        )
        return found[0] if found else None

    async def rates_for_base(
        self,
        base_currency: str,
        on_date: Optional[date] = None,
    ) -> list[CachedRate]:
        if on_date is not None:
            return await self._query(
                """
                SELECT * FROM exchange_rates
                WHERE base_currency = ? AND date = ?
                ORDER BY target_currency
                """,
                (base_currency, on_date.isoformat()),
            )
        return await self._query(
            """
            SELECT * FROM exchange_rates
            WHERE base_currency = ?
            AND date = (
                SELECT MAX(date) FROM exchange_rates
                WHERE base_currency = ?
            )
            ORDER BY target_currency
            """,
            (base_currency, base_currency),
        )

    async def count(self) -> int:
        rows = await self._db.run(self._db.read, "SELECT COUNT(*) FROM exchange_rates")
        return rows[0][0]


class SQLiteAuditStorage(AuditStorageInterface):
    """Append-only audit log in the `audit_events` table."""

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    def _row_to_event(self, row: sqlite3.Row) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row["entity_type"] or None,
            entity_id=row["entity_id"] or None,
            correlation_id=UUID(row["correlation_id"]) if row["correlation_id"] else None,
            description=row["description"],
            details=json.loads(row["details_json"]) if row["details_json"] else {},
            error_code=row["error_code"] or None,
            error_message=row["error_message"] or None,
            is_user_action=row["is_user_action"] == "True",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        row = event.to_row()
        await self._db.run(
            self._db.write,
            lambda conn: conn.execute(
                "INSERT INTO audit_events VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                row,
            ),
        )
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        rows = await self._db.run(
            self._db.read,
            "SELECT * FROM audit_events WHERE correlation_id = ? ORDER BY timestamp ASC",
            (str(correlation_id),),
        )
        return [self._row_to_event(r) for r in rows]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        rows = await self._db.run(
            self._db.read,
            "SELECT * FROM audit_events ORDER BY timestamp DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_event(r) for r in rows]
