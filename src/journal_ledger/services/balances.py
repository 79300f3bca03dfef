"""Balance accumulation for journal postings.

One rule drives every balance change: a debit-normal account moves by
``debit - credit`` and a credit-normal account by ``credit - debit``.
Reversing an entry subtracts exactly what posting it added.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from journal_ledger.domain.journals import JournalEntry
from journal_ledger.domain.value_objects import ZERO, NormalSide
from journal_ledger.repositories.interfaces import AccountBalanceRepository


def balance_delta(entry: JournalEntry) -> Decimal:
    """Signed effect of posting ``entry`` on its account's running balance."""
    if entry.normal_side is NormalSide.DEBIT:
        return entry.debit - entry.credit
    return entry.credit - entry.debit


def compute_balances(entries: Iterable[JournalEntry]) -> dict[UUID, Decimal]:
    """Recompute balances from scratch, as if every entry were posted in turn."""
    accumulator = BalanceAccumulator()
    for entry in entries:
        accumulator.apply(entry)
    return accumulator.deltas


class BalanceAccumulator:
    """Collects net per-account deltas for one posting operation."""

    def __init__(self) -> None:
        self._deltas: defaultdict[UUID, Decimal] = defaultdict(lambda: ZERO)

    def apply(self, entry: JournalEntry) -> None:
        self._deltas[entry.account_id] += balance_delta(entry)

    def reverse(self, entry: JournalEntry) -> None:
        self._deltas[entry.account_id] -= balance_delta(entry)

    @property
    def deltas(self) -> dict[UUID, Decimal]:
        """Net delta per account, omitting accounts whose changes cancel out."""
        return {
            account_id: delta
            for account_id, delta in self._deltas.items()
            if delta != ZERO
        }

    @property
    def touched_accounts(self) -> set[UUID]:
        return set(self._deltas)

    def commit(self, balance_repo: AccountBalanceRepository) -> Mapping[UUID, Decimal]:
        deltas = self.deltas
        if deltas:
            balance_repo.apply_deltas(deltas)
        return deltas
