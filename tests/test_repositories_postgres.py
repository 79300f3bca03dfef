"""Tests for PostgreSQL repository implementations."""

import os
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

# Check for PostgreSQL availability
POSTGRES_URL = os.environ.get("POSTGRES_URL")
SKIP_POSTGRES = POSTGRES_URL is None

pytestmark = pytest.mark.skipif(
    SKIP_POSTGRES, reason="PostgreSQL not available (POSTGRES_URL env var not set)"
)

if not SKIP_POSTGRES:
    from journal_ledger.domain.accounts import Account
    from journal_ledger.domain.history import JournalEvent
    from journal_ledger.domain.journals import (
        JournalDocument,
        JournalEntry,
        JournalLine,
        JournalRequest,
    )
    from journal_ledger.domain.value_objects import AccountType, JournalAction
    from journal_ledger.exceptions import (
        DocumentNotFoundError,
        PersistenceError,
        UnbalancedJournalError,
    )
    from journal_ledger.repositories.postgres import (
        PostgresAccountBalanceRepository,
        PostgresAccountRepository,
        PostgresDatabase,
        PostgresJournalDocumentRepository,
        PostgresJournalEntryRepository,
        PostgresJournalEventRepository,
    )
    from journal_ledger.services.posting import PostingServiceImpl


@pytest.fixture
def db() -> "PostgresDatabase":
    """Create a PostgreSQL database for testing."""
    assert POSTGRES_URL is not None
    database = PostgresDatabase(POSTGRES_URL)
    database.initialize()
    # Clean up tables before test
    with database.transaction("cleanup") as conn, conn.cursor() as cur:
        cur.execute("DELETE FROM journal_events")
        cur.execute("DELETE FROM account_balances")
        cur.execute("DELETE FROM journal_entries")
        cur.execute("DELETE FROM journal_documents")
        cur.execute("DELETE FROM accounts")
    yield database
    database.close()


@pytest.fixture
def account_repo(db: "PostgresDatabase") -> "PostgresAccountRepository":
    return PostgresAccountRepository(db)


@pytest.fixture
def document_repo(db: "PostgresDatabase") -> "PostgresJournalDocumentRepository":
    return PostgresJournalDocumentRepository(db)


@pytest.fixture
def entry_repo(db: "PostgresDatabase") -> "PostgresJournalEntryRepository":
    return PostgresJournalEntryRepository(db)


@pytest.fixture
def balance_repo(db: "PostgresDatabase") -> "PostgresAccountBalanceRepository":
    return PostgresAccountBalanceRepository(db)


@pytest.fixture
def event_repo(db: "PostgresDatabase") -> "PostgresJournalEventRepository":
    return PostgresJournalEventRepository(db)


@pytest.fixture
def cash(account_repo) -> "Account":
    account = Account(name="Cash", account_type=AccountType.ASSET, code="1000")
    account_repo.add(account)
    return account


@pytest.fixture
def revenue(account_repo) -> "Account":
    account = Account(name="Revenue", account_type=AccountType.INCOME, code="4000")
    account_repo.add(account)
    return account


@pytest.fixture
def posting_service(
    db, account_repo, document_repo, entry_repo, balance_repo, event_repo
) -> "PostingServiceImpl":
    return PostingServiceImpl(
        store=db,
        account_repo=account_repo,
        document_repo=document_repo,
        entry_repo=entry_repo,
        balance_repo=balance_repo,
        event_repo=event_repo,
    )


def _request(cash, revenue, number: str, debit: str, credit: str) -> "JournalRequest":
    return JournalRequest(
        journal_number=number,
        journal_date=date(2024, 1, 31),
        lines=[
            JournalLine(account_id=cash.id, debit=Decimal(debit)),
            JournalLine(account_id=revenue.id, credit=Decimal(credit)),
        ],
    )


class TestPostgresAccountRepository:
    def test_add_and_get(self, account_repo, cash):
        fetched = account_repo.get(cash.id)

        assert fetched is not None
        assert fetched.code == "1000"
        assert fetched.normal_side == cash.normal_side

    def test_get_many(self, account_repo, cash, revenue):
        found = account_repo.get_many([cash.id, revenue.id, uuid4()])

        assert set(found) == {cash.id, revenue.id}

    def test_duplicate_code_raises_persistence_error(self, account_repo, cash):
        with pytest.raises(PersistenceError):
            account_repo.add(
                Account(name="Other", account_type=AccountType.ASSET, code="1000")
            )


class TestPostgresJournalDocumentRepository:
    def test_add_get_and_soft_delete(self, document_repo):
        document = JournalDocument(
            journal_number="J-1",
            journal_date=date(2024, 1, 31),
            amount=Decimal("1234.5678"),
        )
        document_repo.add(document)

        fetched = document_repo.get(document.id)
        assert fetched.amount == Decimal("1234.5678")
        assert document_repo.get_by_number("J-1").id == document.id

        document_repo.mark_deleted(document.id, datetime.now(UTC))

        assert document_repo.get(document.id) is None
        assert list(document_repo.list_active()) == []


class TestPostgresJournalEntryRepository:
    def test_add_list_delete(self, entry_repo, cash, revenue):
        reference_id = uuid4()
        entries = [
            JournalEntry(
                account_id=cash.id,
                normal_side=cash.normal_side,
                debit_amount=Decimal("10"),
                reference_id=reference_id,
                line_index=0,
            ),
            JournalEntry(
                account_id=revenue.id,
                normal_side=revenue.normal_side,
                credit_amount=Decimal("10"),
                reference_id=reference_id,
                line_index=1,
            ),
        ]
        entry_repo.add_many(entries)

        fetched = entry_repo.list_by_reference(reference_id)
        assert [e.id for e in fetched] == [e.id for e in entries]

        assert entry_repo.delete_many([e.id for e in entries]) == 2
        assert entry_repo.list_by_reference(reference_id) == []


class TestPostgresAccountBalanceRepository:
    def test_upsert_increments(self, db, balance_repo, cash):
        with db.transaction():
            balance_repo.apply_deltas({cash.id: Decimal("100")})
        with db.transaction():
            balance_repo.apply_deltas({cash.id: Decimal("-25.50")})

        assert balance_repo.get(cash.id).balance == Decimal("74.50")


class TestPostgresJournalEventRepository:
    def test_events_in_order(self, event_repo):
        document = JournalDocument(
            journal_number="J-1", journal_date=date(2024, 1, 31), amount=Decimal("5")
        )
        event_repo.add(JournalEvent.for_document(document, JournalAction.CREATE, None))
        event_repo.add(JournalEvent.for_document(document, JournalAction.DELETE, None))

        events = event_repo.list_by_document(document.id)

        assert [e.action for e in events] == [JournalAction.CREATE, JournalAction.DELETE]


class TestPostgresPosting:
    def test_create_edit_delete(self, posting_service, balance_repo, cash, revenue):
        document = posting_service.create_journal(
            _request(cash, revenue, "J-1", "100", "100")
        )
        assert balance_repo.get(cash.id).balance == Decimal("100")

        posting_service.edit_journal(
            document.id, _request(cash, revenue, "J-1", "40", "40")
        )
        assert balance_repo.get(revenue.id).balance == Decimal("40")

        posting_service.delete_journal(document.id)
        assert balance_repo.get(cash.id).balance == Decimal("0")
        assert posting_service.verify_balances() == {}

        with pytest.raises(DocumentNotFoundError):
            posting_service.delete_journal(document.id)

    def test_rejected_journal_writes_nothing(
        self, posting_service, document_repo, entry_repo, balance_repo, cash, revenue
    ):
        with pytest.raises(UnbalancedJournalError):
            posting_service.create_journal(_request(cash, revenue, "J-1", "100", "90"))

        assert list(document_repo.list_active()) == []
        assert list(entry_repo.list_all()) == []
        assert list(balance_repo.list_all()) == []
