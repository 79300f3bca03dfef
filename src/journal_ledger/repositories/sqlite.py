"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import json
import sqlite3
import threading
from collections.abc import Iterable, Iterator, Mapping
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from journal_ledger.domain.accounts import Account, AccountBalance
from journal_ledger.domain.history import JournalEvent
from journal_ledger.domain.journals import JournalDocument, JournalEntry
from journal_ledger.domain.value_objects import (
    AccountType,
    JournalAction,
    NormalSide,
    ReferenceType,
    TransactionType,
)
from journal_ledger.exceptions import PersistenceError
from journal_ledger.logging_config import get_logger
from journal_ledger.repositories.interfaces import (
    AccountBalanceRepository,
    AccountRepository,
    JournalDocumentRepository,
    JournalEntryRepository,
    JournalEventRepository,
    TransactionalStore,
)

logger = get_logger(__name__)


def _optional_uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


def _optional_decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


class SQLiteDatabase(TransactionalStore):
    """SQLite database connection manager.

    The connection runs in autocommit mode; atomic scopes are opened
    explicitly with BEGIN IMMEDIATE, which takes the database write lock
    up front so concurrent writers serialize instead of deadlocking.
    """

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path,
                check_same_thread=self._check_same_thread,
                isolation_level=None,
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    @contextlib.contextmanager
    def transaction(
        self, operation: str = "transaction", *, read_only: bool = False
    ) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self.get_connection()
            if self._depth > 0:
                self._depth += 1
                try:
                    yield conn
                finally:
                    self._depth -= 1
                return

            try:
                # a deferred BEGIN holds its read snapshot until COMMIT
                conn.execute("BEGIN" if read_only else "BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise PersistenceError(operation, str(e)) from e

            self._depth = 1
            try:
                yield conn
            except sqlite3.Error as e:
                self._rollback(conn, operation, e)
                raise PersistenceError(operation, str(e)) from e
            except BaseException as e:
                self._rollback(conn, operation, e)
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    self._rollback(conn, operation, e)
                    raise PersistenceError(operation, str(e)) from e
            finally:
                self._depth = 0

    @contextlib.contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Borrow the connection for reads; waits out any open write scope."""
        with self._lock:
            yield self.get_connection()

    def _rollback(
        self, conn: sqlite3.Connection, operation: str, error: BaseException
    ) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        logger.warning(
            "transaction_rolled_back",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error),
        )

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Accounts table
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                code TEXT UNIQUE,
                name TEXT NOT NULL,
                account_type TEXT NOT NULL,
                normal_side TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            );

            -- Journal documents (manual journals)
            CREATE TABLE IF NOT EXISTS journal_documents (
                id TEXT PRIMARY KEY,
                journal_number TEXT NOT NULL,
                journal_date TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                reference TEXT NOT NULL DEFAULT '',
                amount TEXT NOT NULL,
                transaction_type TEXT NOT NULL,
                created_by TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT
            );
            CREATE UNIQUE INDEX IF NOT EXISTS uq_journal_documents_number
                ON journal_documents(journal_number) WHERE deleted_at IS NULL;

            -- Journal entries (one debit or credit line each)
            CREATE TABLE IF NOT EXISTS journal_entries (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                debit TEXT,
                credit TEXT,
                reference_type TEXT NOT NULL,
                reference_id TEXT,
                entry_date TEXT,
                note TEXT NOT NULL DEFAULT '',
                user_id TEXT,
                line_index INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                CHECK ((debit IS NULL) != (credit IS NULL)),
                FOREIGN KEY (account_id) REFERENCES accounts(id)
            );

            -- Running balances, one row per account
            CREATE TABLE IF NOT EXISTS account_balances (
                account_id TEXT PRIMARY KEY,
                balance TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (account_id) REFERENCES accounts(id)
            );

            -- Create/supersede/delete trail of each document
            CREATE TABLE IF NOT EXISTS journal_events (
                id TEXT PRIMARY KEY,
                document_id TEXT NOT NULL,
                action TEXT NOT NULL,
                journal_number TEXT NOT NULL,
                amount TEXT NOT NULL,
                user_id TEXT,
                occurred_at TEXT NOT NULL,
                entries TEXT NOT NULL DEFAULT '[]'
            );

            -- Indexes for common queries
            CREATE INDEX IF NOT EXISTS idx_journal_documents_date ON journal_documents(journal_date);
            CREATE INDEX IF NOT EXISTS idx_journal_entries_reference ON journal_entries(reference_type, reference_id);
            CREATE INDEX IF NOT EXISTS idx_journal_entries_account_id ON journal_entries(account_id);
            CREATE INDEX IF NOT EXISTS idx_journal_events_document_id ON journal_events(document_id);
            """
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SQLiteAccountRepository(AccountRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, account: Account) -> None:
        with self._db.transaction("add_account") as conn:
            conn.execute(
                """
                INSERT INTO accounts (id, code, name, account_type, normal_side, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(account.id),
                    account.code,
                    account.name,
                    account.account_type.value,
                    account.normal_side.value if account.normal_side else None,
                    1 if account.is_active else 0,
                    account.created_at.isoformat(),
                ),
            )

    def get(self, account_id: UUID) -> Account | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE id = ?", (str(account_id),)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_account(row)

    def get_many(self, account_ids: Iterable[UUID]) -> dict[UUID, Account]:
        ids = sorted({str(account_id) for account_id in account_ids})
        if not ids:
            return {}
        with self._db.reading() as conn:
            placeholders = ", ".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT * FROM accounts WHERE id IN ({placeholders})", ids
            ).fetchall()
            accounts = [self._row_to_account(row) for row in rows]
            return {account.id: account for account in accounts}

    def list_all(self) -> Iterable[Account]:
        with self._db.reading() as conn:
            rows = conn.execute("SELECT * FROM accounts ORDER BY code, name").fetchall()
            return [self._row_to_account(row) for row in rows]

    def update(self, account: Account) -> None:
        with self._db.transaction("update_account") as conn:
            conn.execute(
                """
                UPDATE accounts SET
                    code = ?,
                    name = ?,
                    is_active = ?
                WHERE id = ?
                """,
                (
                    account.code,
                    account.name,
                    1 if account.is_active else 0,
                    str(account.id),
                ),
            )

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            name=row["name"],
            account_type=AccountType(row["account_type"]),
            id=UUID(row["id"]),
            code=row["code"],
            normal_side=NormalSide(row["normal_side"]),
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteJournalDocumentRepository(JournalDocumentRepository):
    """SQLite implementation of JournalDocumentRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, document: JournalDocument) -> None:
        with self._db.transaction("add_journal_document") as conn:
            conn.execute(
                """
                INSERT INTO journal_documents (id, journal_number, journal_date, description, reference,
                                               amount, transaction_type, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(document.id),
                    document.journal_number,
                    document.journal_date.isoformat(),
                    document.description,
                    document.reference,
                    str(document.amount),
                    document.transaction_type.value,
                    str(document.created_by) if document.created_by else None,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )

    def get(
        self, document_id: UUID, *, for_update: bool = False
    ) -> JournalDocument | None:
        # BEGIN IMMEDIATE already holds the write lock; for_update is a no-op here.
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM journal_documents WHERE id = ? AND deleted_at IS NULL",
                (str(document_id),),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_document(row)

    def get_by_number(
        self, journal_number: str, exclude_id: UUID | None = None
    ) -> JournalDocument | None:
        with self._db.reading() as conn:
            query = """
                SELECT * FROM journal_documents
                WHERE journal_number = ? AND deleted_at IS NULL
            """
            params: list[str] = [journal_number]
            if exclude_id is not None:
                query += " AND id != ?"
                params.append(str(exclude_id))
            row = conn.execute(query, params).fetchone()
            if row is None:
                return None
            return self._row_to_document(row)

    def list_active(self) -> Iterable[JournalDocument]:
        with self._db.reading() as conn:
            rows = conn.execute(
                """
                SELECT * FROM journal_documents
                WHERE deleted_at IS NULL
                ORDER BY journal_date, journal_number
                """
            ).fetchall()
            return [self._row_to_document(row) for row in rows]

    def update(self, document: JournalDocument) -> None:
        with self._db.transaction("update_journal_document") as conn:
            conn.execute(
                """
                UPDATE journal_documents SET
                    journal_number = ?,
                    journal_date = ?,
                    description = ?,
                    reference = ?,
                    amount = ?,
                    transaction_type = ?,
                    updated_at = ?
                WHERE id = ? AND deleted_at IS NULL
                """,
                (
                    document.journal_number,
                    document.journal_date.isoformat(),
                    document.description,
                    document.reference,
                    str(document.amount),
                    document.transaction_type.value,
                    document.updated_at.isoformat(),
                    str(document.id),
                ),
            )

    def mark_deleted(self, document_id: UUID, deleted_at: datetime) -> None:
        with self._db.transaction("delete_journal_document") as conn:
            conn.execute(
                "UPDATE journal_documents SET deleted_at = ? WHERE id = ?",
                (deleted_at.isoformat(), str(document_id)),
            )

    def _row_to_document(self, row: sqlite3.Row) -> JournalDocument:
        return JournalDocument(
            journal_number=row["journal_number"],
            journal_date=date.fromisoformat(row["journal_date"]),
            amount=Decimal(row["amount"]),
            id=UUID(row["id"]),
            description=row["description"],
            reference=row["reference"],
            transaction_type=TransactionType(row["transaction_type"]),
            created_by=_optional_uuid(row["created_by"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            deleted_at=datetime.fromisoformat(row["deleted_at"])
            if row["deleted_at"]
            else None,
        )


class SQLiteJournalEntryRepository(JournalEntryRepository):
    """SQLite implementation of JournalEntryRepository."""

    _SELECT = """
        SELECT e.*, a.normal_side FROM journal_entries e
        JOIN accounts a ON a.id = e.account_id
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add_many(self, entries: Iterable[JournalEntry]) -> None:
        with self._db.transaction("add_journal_entries") as conn:
            conn.executemany(
                """
                INSERT INTO journal_entries (id, account_id, debit, credit, reference_type, reference_id,
                                             entry_date, note, user_id, line_index, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(entry.id),
                        str(entry.account_id),
                        str(entry.debit_amount)
                        if entry.debit_amount is not None
                        else None,
                        str(entry.credit_amount)
                        if entry.credit_amount is not None
                        else None,
                        entry.reference_type.value,
                        str(entry.reference_id) if entry.reference_id else None,
                        entry.entry_date.isoformat() if entry.entry_date else None,
                        entry.note,
                        str(entry.user_id) if entry.user_id else None,
                        entry.line_index,
                        entry.created_at.isoformat(),
                    )
                    for entry in entries
                ],
            )

    def list_by_reference(
        self,
        reference_id: UUID,
        reference_types: Iterable[ReferenceType] = (
            ReferenceType.JOURNAL,
            ReferenceType.MANUAL_JOURNAL,
        ),
    ) -> list[JournalEntry]:
        types = [reference_type.value for reference_type in reference_types]
        placeholders = ", ".join("?" for _ in types)
        with self._db.reading() as conn:
            rows = conn.execute(
                self._SELECT
                + f" WHERE e.reference_id = ? AND e.reference_type IN ({placeholders})"
                + " ORDER BY e.line_index",
                [str(reference_id), *types],
            ).fetchall()
            return [self._row_to_entry(row) for row in rows]

    def delete_many(self, entry_ids: Iterable[UUID]) -> int:
        ids = [str(entry_id) for entry_id in entry_ids]
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._db.transaction("delete_journal_entries") as conn:
            cursor = conn.execute(
                f"DELETE FROM journal_entries WHERE id IN ({placeholders})", ids
            )
            return cursor.rowcount

    def list_all(self) -> Iterable[JournalEntry]:
        with self._db.reading() as conn:
            rows = conn.execute(self._SELECT + " ORDER BY e.created_at").fetchall()
            return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row: sqlite3.Row) -> JournalEntry:
        return JournalEntry(
            account_id=UUID(row["account_id"]),
            normal_side=NormalSide(row["normal_side"]),
            debit_amount=_optional_decimal(row["debit"]),
            credit_amount=_optional_decimal(row["credit"]),
            id=UUID(row["id"]),
            reference_type=ReferenceType(row["reference_type"]),
            reference_id=_optional_uuid(row["reference_id"]),
            entry_date=date.fromisoformat(row["entry_date"])
            if row["entry_date"]
            else None,
            note=row["note"],
            user_id=_optional_uuid(row["user_id"]),
            line_index=row["line_index"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteAccountBalanceRepository(AccountBalanceRepository):
    """SQLite implementation of AccountBalanceRepository.

    SQLite has no exact decimal arithmetic in SQL, so each increment reads
    and rewrites the row inside the caller's BEGIN IMMEDIATE scope, where
    the write lock makes the read and the write indivisible.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def get(self, account_id: UUID) -> AccountBalance | None:
        with self._db.reading() as conn:
            row = conn.execute(
                "SELECT * FROM account_balances WHERE account_id = ?", (str(account_id),)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_balance(row)

    def list_all(self) -> Iterable[AccountBalance]:
        with self._db.reading() as conn:
            rows = conn.execute("SELECT * FROM account_balances").fetchall()
            return [self._row_to_balance(row) for row in rows]

    def apply_deltas(self, deltas: Mapping[UUID, Decimal]) -> None:
        now = datetime.now(UTC).isoformat()
        with self._db.transaction("apply_balance_deltas") as conn:
            for account_id in sorted(deltas, key=str):
                row = conn.execute(
                    "SELECT balance FROM account_balances WHERE account_id = ?",
                    (str(account_id),),
                ).fetchone()
                if row is None:
                    conn.execute(
                        """
                        INSERT INTO account_balances (account_id, balance, updated_at)
                        VALUES (?, ?, ?)
                        """,
                        (str(account_id), str(deltas[account_id]), now),
                    )
                else:
                    balance = Decimal(row["balance"]) + deltas[account_id]
                    conn.execute(
                        """
                        UPDATE account_balances SET balance = ?, updated_at = ?
                        WHERE account_id = ?
                        """,
                        (str(balance), now, str(account_id)),
                    )

    def _row_to_balance(self, row: sqlite3.Row) -> AccountBalance:
        return AccountBalance(
            account_id=UUID(row["account_id"]),
            balance=Decimal(row["balance"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteJournalEventRepository(JournalEventRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, event: JournalEvent) -> None:
        with self._db.transaction("add_journal_event") as conn:
            conn.execute(
                """
                INSERT INTO journal_events (id, document_id, action, journal_number, amount,
                                            user_id, occurred_at, entries)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(event.id),
                    str(event.document_id),
                    event.action.value,
                    event.journal_number,
                    str(event.amount),
                    str(event.user_id) if event.user_id else None,
                    event.occurred_at.isoformat(),
                    json.dumps(event.entries),
                ),
            )

    def list_by_document(self, document_id: UUID) -> list[JournalEvent]:
        with self._db.reading() as conn:
            rows = conn.execute(
                """
                SELECT * FROM journal_events WHERE document_id = ?
                ORDER BY occurred_at, rowid
                """,
                (str(document_id),),
            ).fetchall()
            return [
                JournalEvent(
                    document_id=UUID(row["document_id"]),
                    action=JournalAction(row["action"]),
                    journal_number=row["journal_number"],
                    amount=Decimal(row["amount"]),
                    id=UUID(row["id"]),
                    user_id=_optional_uuid(row["user_id"]),
                    occurred_at=datetime.fromisoformat(row["occurred_at"]),
                    entries=json.loads(row["entries"]),
                )
                for row in rows
            ]
