from datetime import date
from decimal import Decimal

import pytest

from journal_ledger.domain.accounts import Account
from journal_ledger.domain.journals import JournalLine, JournalRequest
from journal_ledger.domain.value_objects import AccountType
from journal_ledger.repositories.sqlite import (
    SQLiteAccountBalanceRepository,
    SQLiteAccountRepository,
    SQLiteDatabase,
    SQLiteJournalDocumentRepository,
    SQLiteJournalEntryRepository,
    SQLiteJournalEventRepository,
)
from journal_ledger.services.posting import PostingServiceImpl


@pytest.fixture
def db() -> SQLiteDatabase:
    """Create an in-memory SQLite database for testing."""
    database = SQLiteDatabase(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def account_repo(db: SQLiteDatabase) -> SQLiteAccountRepository:
    return SQLiteAccountRepository(db)


@pytest.fixture
def document_repo(db: SQLiteDatabase) -> SQLiteJournalDocumentRepository:
    return SQLiteJournalDocumentRepository(db)


@pytest.fixture
def entry_repo(db: SQLiteDatabase) -> SQLiteJournalEntryRepository:
    return SQLiteJournalEntryRepository(db)


@pytest.fixture
def balance_repo(db: SQLiteDatabase) -> SQLiteAccountBalanceRepository:
    return SQLiteAccountBalanceRepository(db)


@pytest.fixture
def event_repo(db: SQLiteDatabase) -> SQLiteJournalEventRepository:
    return SQLiteJournalEventRepository(db)


@pytest.fixture
def posting_service(
    db: SQLiteDatabase,
    account_repo: SQLiteAccountRepository,
    document_repo: SQLiteJournalDocumentRepository,
    entry_repo: SQLiteJournalEntryRepository,
    balance_repo: SQLiteAccountBalanceRepository,
    event_repo: SQLiteJournalEventRepository,
) -> PostingServiceImpl:
    return PostingServiceImpl(
        store=db,
        account_repo=account_repo,
        document_repo=document_repo,
        entry_repo=entry_repo,
        balance_repo=balance_repo,
        event_repo=event_repo,
    )


@pytest.fixture
def cash_account(account_repo: SQLiteAccountRepository) -> Account:
    """A persisted debit-normal account."""
    account = Account(name="Cash", account_type=AccountType.ASSET, code="1000")
    account_repo.add(account)
    return account


@pytest.fixture
def revenue_account(account_repo: SQLiteAccountRepository) -> Account:
    """A persisted credit-normal account."""
    account = Account(name="Sales Revenue", account_type=AccountType.INCOME, code="4000")
    account_repo.add(account)
    return account


@pytest.fixture
def make_request(cash_account: Account, revenue_account: Account):
    """Build a two-line request debiting cash and crediting revenue."""

    def _make(
        journal_number: str = "J-1",
        debit: str = "100",
        credit: str | None = None,
        **kwargs,
    ) -> JournalRequest:
        return JournalRequest(
            journal_number=journal_number,
            journal_date=kwargs.pop("journal_date", date(2024, 1, 31)),
            lines=[
                JournalLine(account_id=cash_account.id, debit=Decimal(debit)),
                JournalLine(
                    account_id=revenue_account.id,
                    credit=Decimal(credit if credit is not None else debit),
                ),
            ],
            **kwargs,
        )

    return _make
