from journal_ledger.repositories.interfaces import (
    AccountBalanceRepository,
    AccountRepository,
    JournalDocumentRepository,
    JournalEntryRepository,
    JournalEventRepository,
    TransactionalStore,
)
from journal_ledger.repositories.sqlite import (
    SQLiteAccountBalanceRepository,
    SQLiteAccountRepository,
    SQLiteDatabase,
    SQLiteJournalDocumentRepository,
    SQLiteJournalEntryRepository,
    SQLiteJournalEventRepository,
)

__all__ = [
    "AccountBalanceRepository",
    "AccountRepository",
    "JournalDocumentRepository",
    "JournalEntryRepository",
    "JournalEventRepository",
    "TransactionalStore",
    "SQLiteAccountBalanceRepository",
    "SQLiteAccountRepository",
    "SQLiteDatabase",
    "SQLiteJournalDocumentRepository",
    "SQLiteJournalEntryRepository",
    "SQLiteJournalEventRepository",
]
