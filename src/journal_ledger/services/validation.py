"""Pure validation of journal requests.

Nothing here touches the store. Store-dependent checks (account
resolution, journal number uniqueness) take the lookups they need as
arguments so the posting service can run them inside its transaction.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from journal_ledger.domain.accounts import Account
from journal_ledger.domain.journals import JournalDocument, JournalLine
from journal_ledger.domain.value_objects import ZERO
from journal_ledger.exceptions import (
    DuplicateJournalNumberError,
    InvalidEntryError,
    JournalValidationError,
    UnbalancedJournalError,
    UnbalancedKind,
    UnknownAccountError,
)


@dataclass(frozen=True)
class JournalTotals:
    debit: Decimal
    credit: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.debit == self.credit


def filter_lines(lines: Iterable[JournalLine], strict: bool = False) -> list[JournalLine]:
    """Drop lines carrying neither a debit nor a credit.

    In strict mode such lines are rejected instead.
    """
    kept = []
    for index, line in enumerate(lines):
        if line.has_amount:
            kept.append(line)
        elif strict:
            raise InvalidEntryError(
                "neither debit nor credit is set",
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                line=index,
            )
    return kept


def _is_positive(amount: Decimal | None) -> bool:
    return amount is not None and amount.is_finite() and amount > ZERO


def check_lines(lines: Iterable[JournalLine]) -> list[JournalValidationError]:
    """Check the shape of each line: one positive, finite side only."""
    violations: list[JournalValidationError] = []
    for index, line in enumerate(lines):
        debit = line.debit or ZERO
        credit = line.credit or ZERO
        if not (debit.is_finite() and credit.is_finite()):
            reason = "amount must be finite"
        elif debit != ZERO and credit != ZERO:
            reason = "both debit and credit are set"
        elif debit < ZERO or credit < ZERO:
            reason = "amount must be positive"
        else:
            continue
        violations.append(
            InvalidEntryError(
                reason,
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                line=index,
            )
        )
    return violations


def compute_totals(lines: Iterable[JournalLine]) -> JournalTotals:
    """Sum the positive amounts of each side.

    Non-finite amounts are left out; check_lines reports them.
    """
    debit = ZERO
    credit = ZERO
    for line in lines:
        if _is_positive(line.debit):
            debit += line.debit
        if _is_positive(line.credit):
            credit += line.credit
    return JournalTotals(debit=debit, credit=credit)


def check_totals(totals: JournalTotals) -> list[JournalValidationError]:
    violations: list[JournalValidationError] = []
    if totals.debit <= ZERO or totals.credit <= ZERO:
        violations.append(
            UnbalancedJournalError(UnbalancedKind.ZERO_TOTAL, totals.debit, totals.credit)
        )
    if not totals.is_balanced:
        violations.append(
            UnbalancedJournalError(UnbalancedKind.MISMATCH, totals.debit, totals.credit)
        )
    return violations


def check_accounts(
    lines: Iterable[JournalLine], accounts: Mapping[UUID, Account]
) -> list[JournalValidationError]:
    missing = {line.account_id for line in lines if line.account_id not in accounts}
    if missing:
        return [UnknownAccountError(missing)]
    return []


def check_journal_number(
    journal_number: str, existing: JournalDocument | None
) -> list[JournalValidationError]:
    if existing is not None:
        return [DuplicateJournalNumberError(journal_number, existing.id)]
    return []


def raise_for_violations(violations: list[JournalValidationError]) -> None:
    """Raise the first violation, carrying the full list."""
    if not violations:
        return
    first = violations[0]
    first.attach_violations(violations)
    raise first
