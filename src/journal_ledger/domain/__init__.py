from journal_ledger.domain.accounts import Account, AccountBalance
from journal_ledger.domain.filters import (
    FilterComparator,
    FilterCondition,
    FilterRole,
    filter_documents,
)
from journal_ledger.domain.history import JournalEvent
from journal_ledger.domain.journals import (
    JournalDocument,
    JournalEntry,
    JournalLine,
    JournalRequest,
    QuickJournalRequest,
)
from journal_ledger.domain.value_objects import (
    AccountType,
    JournalAction,
    NormalSide,
    ReferenceType,
    TransactionType,
    UnbalancedKind,
)

__all__ = [
    "Account",
    "AccountBalance",
    "AccountType",
    "FilterComparator",
    "FilterCondition",
    "FilterRole",
    "JournalAction",
    "JournalDocument",
    "JournalEntry",
    "JournalEvent",
    "JournalLine",
    "JournalRequest",
    "NormalSide",
    "QuickJournalRequest",
    "ReferenceType",
    "TransactionType",
    "UnbalancedKind",
    "filter_documents",
]
