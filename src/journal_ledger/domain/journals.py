from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from journal_ledger.domain.value_objects import (
    ZERO,
    NormalSide,
    ReferenceType,
    TransactionType,
    to_decimal,
)
from journal_ledger.exceptions import InvalidEntryError


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _is_set(amount: Decimal | None) -> bool:
    return amount is not None and amount != ZERO


def _is_finite(amount: Decimal | None) -> bool:
    return amount is None or amount.is_finite()


@dataclass(frozen=True)
class JournalEntry:
    """One debit or credit line against one account.

    Exactly one of debit_amount/credit_amount is set, and it is positive.
    Entries are immutable; edits replace them rather than mutate them.
    """

    account_id: UUID
    normal_side: NormalSide
    debit_amount: Decimal | None = None
    credit_amount: Decimal | None = None
    id: UUID = field(default_factory=uuid4)
    reference_type: ReferenceType = ReferenceType.JOURNAL
    reference_id: UUID | None = None
    entry_date: date | None = None
    note: str = ""
    user_id: UUID | None = None
    line_index: int = 0
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        debit = to_decimal(self.debit_amount)
        credit = to_decimal(self.credit_amount)
        if not (_is_finite(debit) and _is_finite(credit)):
            raise InvalidEntryError(
                "amount must be finite",
                account_id=self.account_id,
                debit=debit,
                credit=credit,
                line=self.line_index,
            )
        object.__setattr__(self, "debit_amount", debit if _is_set(debit) else None)
        object.__setattr__(self, "credit_amount", credit if _is_set(credit) else None)

        if self.debit_amount is not None and self.credit_amount is not None:
            raise InvalidEntryError(
                "both debit and credit are set",
                account_id=self.account_id,
                debit=debit,
                credit=credit,
                line=self.line_index,
            )
        if self.debit_amount is None and self.credit_amount is None:
            raise InvalidEntryError(
                "neither debit nor credit is set",
                account_id=self.account_id,
                debit=debit,
                credit=credit,
                line=self.line_index,
            )
        if self.amount < ZERO:
            raise InvalidEntryError(
                "amount must be positive",
                account_id=self.account_id,
                debit=debit,
                credit=credit,
                line=self.line_index,
            )

    @property
    def is_debit(self) -> bool:
        return self.debit_amount is not None

    @property
    def is_credit(self) -> bool:
        return self.credit_amount is not None

    @property
    def amount(self) -> Decimal:
        if self.debit_amount is not None:
            return self.debit_amount
        assert self.credit_amount is not None
        return self.credit_amount

    @property
    def debit(self) -> Decimal:
        return self.debit_amount or ZERO

    @property
    def credit(self) -> Decimal:
        return self.credit_amount or ZERO


@dataclass
class JournalDocument:
    """A named, numbered batch of balanced entries (a manual journal)."""

    journal_number: str
    journal_date: date
    amount: Decimal
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    reference: str = ""
    transaction_type: TransactionType = TransactionType.JOURNAL
    created_by: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None
    entries: list[JournalEntry] = field(default_factory=list)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def total_debits(self) -> Decimal:
        return sum((entry.debit for entry in self.entries), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((entry.credit for entry in self.entries), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits == self.amount

    @property
    def account_ids(self) -> set[UUID]:
        return {entry.account_id for entry in self.entries}


@dataclass
class JournalLine:
    """One requested line of a journal, before validation."""

    account_id: UUID
    debit: Decimal | None = None
    credit: Decimal | None = None
    note: str = ""

    def __post_init__(self) -> None:
        self.debit = to_decimal(self.debit)
        self.credit = to_decimal(self.credit)

    @property
    def has_amount(self) -> bool:
        return _is_set(self.debit) or _is_set(self.credit)


@dataclass
class JournalRequest:
    """A create/edit request as handed over by the HTTP layer or CLI."""

    journal_number: str
    journal_date: date
    lines: list[JournalLine] = field(default_factory=list)
    description: str = ""
    reference: str = ""
    transaction_type: TransactionType = TransactionType.JOURNAL


@dataclass
class QuickJournalRequest:
    """A single amount moved from one account to another."""

    journal_number: str
    journal_date: date
    amount: Decimal
    debit_account_id: UUID
    credit_account_id: UUID
    note: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)  # type: ignore[assignment]

    def to_journal_request(self) -> JournalRequest:
        return JournalRequest(
            journal_number=self.journal_number,
            journal_date=self.journal_date,
            lines=[
                JournalLine(
                    account_id=self.debit_account_id,
                    debit=self.amount,
                    note=self.note,
                ),
                JournalLine(
                    account_id=self.credit_account_id,
                    credit=self.amount,
                    note=self.note,
                ),
            ],
            description=self.description,
            transaction_type=TransactionType.QUICK_JOURNAL,
        )
