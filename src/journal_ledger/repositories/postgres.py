"""PostgreSQL implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterable, Iterator, Mapping
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import psycopg2
import psycopg2.extras

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


def _optional_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class PostgresDatabase(TransactionalStore):
    """PostgreSQL database connection manager.

    The connection runs in autocommit mode so plain reads never leave a
    transaction open; ``transaction()`` issues BEGIN/COMMIT explicitly.
    """

    def __init__(self, connection_string: str) -> None:
        self._connection_string = connection_string
        self._connection: psycopg2.extensions.connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    def get_connection(self) -> psycopg2.extensions.connection:
        """Get or create the database connection."""
        if self._connection is None or self._connection.closed:
            self._connection = psycopg2.connect(
                self._connection_string,
                cursor_factory=psycopg2.extras.RealDictCursor,
            )
            self._connection.autocommit = True
        return self._connection

    @contextlib.contextmanager
    def transaction(
        self, operation: str = "transaction", *, read_only: bool = False
    ) -> Iterator[psycopg2.extensions.connection]:
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
                with conn.cursor() as cur:
                    cur.execute(
                        "BEGIN ISOLATION LEVEL REPEATABLE READ READ ONLY"
                        if read_only
                        else "BEGIN"
                    )
            except psycopg2.Error as e:
                raise PersistenceError(operation, str(e)) from e

            self._depth = 1
            try:
                yield conn
            except psycopg2.Error as e:
                self._rollback(conn, operation, e)
                raise PersistenceError(operation, str(e)) from e
            except BaseException as e:
                self._rollback(conn, operation, e)
                raise
            else:
                try:
                    with conn.cursor() as cur:
                        cur.execute("COMMIT")
                except psycopg2.Error as e:
                    self._rollback(conn, operation, e)
                    raise PersistenceError(operation, str(e)) from e
            finally:
                self._depth = 0

    @contextlib.contextmanager
    def reading(self) -> Iterator[psycopg2.extensions.connection]:
        with self._lock:
            conn = self.get_connection()
            try:
                yield conn
            except psycopg2.Error as e:
                raise PersistenceError("read", str(e)) from e

    def _rollback(
        self,
        conn: psycopg2.extensions.connection,
        operation: str,
        error: BaseException,
    ) -> None:
        if not conn.closed:
            with conn.cursor() as cur:
                cur.execute("ROLLBACK")
        logger.warning(
            "transaction_rolled_back",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error),
        )

    def initialize(self) -> None:
        """Create all database tables."""
        with self.transaction("initialize") as conn, conn.cursor() as cur:
            cur.execute(
                """
                -- Accounts table
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    code TEXT UNIQUE,
                    name TEXT NOT NULL,
                    account_type TEXT NOT NULL,
                    normal_side TEXT NOT NULL,
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at TEXT NOT NULL
                );

                -- Journal documents (manual journals)
                CREATE TABLE IF NOT EXISTS journal_documents (
                    id TEXT PRIMARY KEY,
                    journal_number TEXT NOT NULL,
                    journal_date TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    reference TEXT NOT NULL DEFAULT '',
                    amount NUMERIC NOT NULL,
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
                    account_id TEXT NOT NULL REFERENCES accounts(id),
                    debit NUMERIC,
                    credit NUMERIC,
                    reference_type TEXT NOT NULL,
                    reference_id TEXT,
                    entry_date TEXT,
                    note TEXT NOT NULL DEFAULT '',
                    user_id TEXT,
                    line_index INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    CHECK ((debit IS NULL) <> (credit IS NULL))
                );

                -- Running balances, one row per account
                CREATE TABLE IF NOT EXISTS account_balances (
                    account_id TEXT PRIMARY KEY REFERENCES accounts(id),
                    balance NUMERIC NOT NULL,
                    updated_at TEXT NOT NULL
                );

                -- Create/supersede/delete trail of each document
                CREATE TABLE IF NOT EXISTS journal_events (
                    id TEXT PRIMARY KEY,
                    seq BIGSERIAL,
                    document_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    journal_number TEXT NOT NULL,
                    amount NUMERIC NOT NULL,
                    user_id TEXT,
                    occurred_at TEXT NOT NULL,
                    entries JSONB NOT NULL DEFAULT '[]'::jsonb
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
        if self._connection is not None and not self._connection.closed:
            self._connection.close()
        self._connection = None


class PostgresAccountRepository(AccountRepository):
    """PostgreSQL implementation of AccountRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, account: Account) -> None:
        with self._db.transaction("add_account") as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO accounts (id, code, name, account_type, normal_side, is_active, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(account.id),
                    account.code,
                    account.name,
                    account.account_type.value,
                    account.normal_side.value if account.normal_side else None,
                    account.is_active,
                    account.created_at.isoformat(),
                ),
            )

    def get(self, account_id: UUID) -> Account | None:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM accounts WHERE id = %s", (str(account_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def get_many(self, account_ids: Iterable[UUID]) -> dict[UUID, Account]:
        ids = sorted({str(account_id) for account_id in account_ids})
        if not ids:
            return {}
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM accounts WHERE id = ANY(%s)", (ids,))
            rows = cur.fetchall()
        accounts = [self._row_to_account(row) for row in rows]
        return {account.id: account for account in accounts}

    def list_all(self) -> Iterable[Account]:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM accounts ORDER BY code, name")
            rows = cur.fetchall()
        return [self._row_to_account(row) for row in rows]

    def update(self, account: Account) -> None:
        with self._db.transaction("update_account") as conn, conn.cursor() as cur:
            cur.execute(
                """
                UPDATE accounts SET
                    code = %s,
                    name = %s,
                    is_active = %s
                WHERE id = %s
                """,
                (account.code, account.name, account.is_active, str(account.id)),
            )

    def _row_to_account(self, row: Any) -> Account:
        return Account(
            name=row["name"],
            account_type=AccountType(row["account_type"]),
            id=UUID(row["id"]),
            code=row["code"],
            normal_side=NormalSide(row["normal_side"]),
            is_active=row["is_active"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class PostgresJournalDocumentRepository(JournalDocumentRepository):
    """PostgreSQL implementation of JournalDocumentRepository."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, document: JournalDocument) -> None:
        with self._db.transaction("add_journal_document") as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO journal_documents (id, journal_number, journal_date, description, reference,
                                               amount, transaction_type, created_by, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(document.id),
                    document.journal_number,
                    document.journal_date.isoformat(),
                    document.description,
                    document.reference,
                    document.amount,
                    document.transaction_type.value,
                    str(document.created_by) if document.created_by else None,
                    document.created_at.isoformat(),
                    document.updated_at.isoformat(),
                ),
            )

    def get(
        self, document_id: UUID, *, for_update: bool = False
    ) -> JournalDocument | None:
        query = "SELECT * FROM journal_documents WHERE id = %s AND deleted_at IS NULL"
        if for_update:
            query += " FOR UPDATE"
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(query, (str(document_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_document(row)

    def get_by_number(
        self, journal_number: str, exclude_id: UUID | None = None
    ) -> JournalDocument | None:
        query = """
            SELECT * FROM journal_documents
            WHERE journal_number = %s AND deleted_at IS NULL
        """
        params: list[str] = [journal_number]
        if exclude_id is not None:
            query += " AND id <> %s"
            params.append(str(exclude_id))
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_document(row)

    def list_active(self) -> Iterable[JournalDocument]:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT * FROM journal_documents
                WHERE deleted_at IS NULL
                ORDER BY journal_date, journal_number
                """
            )
            rows = cur.fetchall()
        return [self._row_to_document(row) for row in rows]

    def update(self, document: JournalDocument) -> None:
        with self._db.transaction("update_journal_document") as conn, conn.cursor() as cur:
            cur.execute(
                """
                UPDATE journal_documents SET
                    journal_number = %s,
                    journal_date = %s,
                    description = %s,
                    reference = %s,
                    amount = %s,
                    transaction_type = %s,
                    updated_at = %s
                WHERE id = %s AND deleted_at IS NULL
                """,
                (
                    document.journal_number,
                    document.journal_date.isoformat(),
                    document.description,
                    document.reference,
                    document.amount,
                    document.transaction_type.value,
                    document.updated_at.isoformat(),
                    str(document.id),
                ),
            )

    def mark_deleted(self, document_id: UUID, deleted_at: datetime) -> None:
        with self._db.transaction("delete_journal_document") as conn, conn.cursor() as cur:
            cur.execute(
                "UPDATE journal_documents SET deleted_at = %s WHERE id = %s",
                (deleted_at.isoformat(), str(document_id)),
            )

    def _row_to_document(self, row: Any) -> JournalDocument:
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
            deleted_at=_optional_datetime(row["deleted_at"]),
        )


class PostgresJournalEntryRepository(JournalEntryRepository):
    """PostgreSQL implementation of JournalEntryRepository."""

    _SELECT = """
        SELECT e.*, a.normal_side FROM journal_entries e
        JOIN accounts a ON a.id = e.account_id
    """

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add_many(self, entries: Iterable[JournalEntry]) -> None:
        rows = [
            (
                str(entry.id),
                str(entry.account_id),
                entry.debit_amount,
                entry.credit_amount,
                entry.reference_type.value,
                str(entry.reference_id) if entry.reference_id else None,
                entry.entry_date.isoformat() if entry.entry_date else None,
                entry.note,
                str(entry.user_id) if entry.user_id else None,
                entry.line_index,
                entry.created_at.isoformat(),
            )
            for entry in entries
        ]
        if not rows:
            return
        with self._db.transaction("add_journal_entries") as conn, conn.cursor() as cur:
            psycopg2.extras.execute_batch(
                cur,
                """
                INSERT INTO journal_entries (id, account_id, debit, credit, reference_type, reference_id,
                                             entry_date, note, user_id, line_index, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                rows,
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
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(
                self._SELECT
                + " WHERE e.reference_id = %s AND e.reference_type = ANY(%s)"
                + " ORDER BY e.line_index",
                (str(reference_id), types),
            )
            rows = cur.fetchall()
        return [self._row_to_entry(row) for row in rows]

    def delete_many(self, entry_ids: Iterable[UUID]) -> int:
        ids = [str(entry_id) for entry_id in entry_ids]
        if not ids:
            return 0
        with self._db.transaction("delete_journal_entries") as conn, conn.cursor() as cur:
            cur.execute("DELETE FROM journal_entries WHERE id = ANY(%s)", (ids,))
            return cur.rowcount

    def list_all(self) -> Iterable[JournalEntry]:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(self._SELECT + " ORDER BY e.created_at")
            rows = cur.fetchall()
        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row: Any) -> JournalEntry:
        return JournalEntry(
            account_id=UUID(row["account_id"]),
            normal_side=NormalSide(row["normal_side"]),
            debit_amount=row["debit"],
            credit_amount=row["credit"],
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


class PostgresAccountBalanceRepository(AccountBalanceRepository):
    """PostgreSQL implementation of AccountBalanceRepository.

    Increments are a single upsert per account, so concurrent postings
    to the same account accumulate instead of overwriting each other.
    """

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def get(self, account_id: UUID) -> AccountBalance | None:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(
                "SELECT * FROM account_balances WHERE account_id = %s",
                (str(account_id),),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_balance(row)

    def list_all(self) -> Iterable[AccountBalance]:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM account_balances")
            rows = cur.fetchall()
        return [self._row_to_balance(row) for row in rows]

    def apply_deltas(self, deltas: Mapping[UUID, Decimal]) -> None:
        now = datetime.now(UTC).isoformat()
        # sorted so concurrent postings lock balance rows in the same order
        rows = [
            (str(account_id), deltas[account_id], now)
            for account_id in sorted(deltas, key=str)
        ]
        with self._db.transaction("apply_balance_deltas") as conn, conn.cursor() as cur:
            psycopg2.extras.execute_batch(
                cur,
                """
                INSERT INTO account_balances (account_id, balance, updated_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (account_id) DO UPDATE SET
                    balance = account_balances.balance + EXCLUDED.balance,
                    updated_at = EXCLUDED.updated_at
                """,
                rows,
            )

    def _row_to_balance(self, row: Any) -> AccountBalance:
        return AccountBalance(
            account_id=UUID(row["account_id"]),
            balance=Decimal(row["balance"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class PostgresJournalEventRepository(JournalEventRepository):
    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def add(self, event: JournalEvent) -> None:
        with self._db.transaction("add_journal_event") as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO journal_events (id, document_id, action, journal_number, amount,
                                            user_id, occurred_at, entries)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    str(event.id),
                    str(event.document_id),
                    event.action.value,
                    event.journal_number,
                    event.amount,
                    str(event.user_id) if event.user_id else None,
                    event.occurred_at.isoformat(),
                    psycopg2.extras.Json(event.entries),
                ),
            )

    def list_by_document(self, document_id: UUID) -> list[JournalEvent]:
        with self._db.reading() as conn, conn.cursor() as cur:
            cur.execute(
                """
                SELECT * FROM journal_events WHERE document_id = %s
                ORDER BY occurred_at, seq
                """,
                (str(document_id),),
            )
            rows = cur.fetchall()
        return [
            JournalEvent(
                document_id=UUID(row["document_id"]),
                action=JournalAction(row["action"]),
                journal_number=row["journal_number"],
                amount=Decimal(row["amount"]),
                id=UUID(row["id"]),
                user_id=_optional_uuid(row["user_id"]),
                occurred_at=datetime.fromisoformat(row["occurred_at"]),
                entries=row["entries"],
            )
            for row in rows
        ]
