from decimal import Decimal
from enum import Enum

from journal_ledger.exceptions import UnbalancedKind


class NormalSide(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def normal_side(self) -> NormalSide:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalSide.DEBIT
        return NormalSide.CREDIT


class ReferenceType(str, Enum):
    JOURNAL = "Journal"
    MANUAL_JOURNAL = "ManualJournal"


class TransactionType(str, Enum):
    JOURNAL = "Journal"
    QUICK_JOURNAL = "QuickJournal"


class JournalAction(str, Enum):
    CREATE = "create"
    SUPERSEDE = "supersede"
    DELETE = "delete"


ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal | None:
    """Coerce a user-supplied amount to Decimal, keeping None as absent."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


__all__ = [
    "AccountType",
    "JournalAction",
    "NormalSide",
    "ReferenceType",
    "TransactionType",
    "UnbalancedKind",
    "ZERO",
    "to_decimal",
]
