from journal_ledger.domain.accounts import Account, AccountBalance
from journal_ledger.domain.journals import (
    JournalDocument,
    JournalEntry,
    JournalLine,
    JournalRequest,
    QuickJournalRequest,
)
from journal_ledger.domain.value_objects import AccountType, NormalSide

__all__ = [
    "Account",
    "AccountBalance",
    "AccountType",
    "JournalDocument",
    "JournalEntry",
    "JournalLine",
    "JournalRequest",
    "NormalSide",
    "QuickJournalRequest",
]

__version__ = "0.1.0"
