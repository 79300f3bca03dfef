"""Journal poster: stages entries and commits them with their balance effects."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from journal_ledger.domain.journals import JournalEntry
from journal_ledger.exceptions import PosterStateError
from journal_ledger.logging_config import get_logger
from journal_ledger.repositories.interfaces import (
    AccountBalanceRepository,
    JournalEntryRepository,
    TransactionalStore,
)
from journal_ledger.services.balances import BalanceAccumulator

logger = get_logger(__name__)


@dataclass
class PosterHandle:
    """The in-flight state of one posting operation.

    Owned by the poster for the duration of the operation; nothing keeps
    a reference to its entries once it is committed.
    """

    debits: list[JournalEntry] = field(default_factory=list)
    credits: list[JournalEntry] = field(default_factory=list)
    loaded: list[JournalEntry] = field(default_factory=list)
    pending_deletion: list[JournalEntry] = field(default_factory=list)
    accumulator: BalanceAccumulator = field(default_factory=BalanceAccumulator)
    entries_committed: bool = False
    balances_committed: bool = False

    @property
    def staged(self) -> list[JournalEntry]:
        return [*self.debits, *self.credits]

    @property
    def is_committed(self) -> bool:
        return self.entries_committed and self.balances_committed


class JournalPoster:
    """Posts exactly what is staged.

    Balance checks belong to the caller; the poster only guarantees that
    staged inserts, pending deletions and the resulting balance deltas
    land together or not at all.
    """

    def __init__(
        self,
        store: TransactionalStore,
        entry_repo: JournalEntryRepository,
        balance_repo: AccountBalanceRepository,
    ) -> None:
        self._store = store
        self._entry_repo = entry_repo
        self._balance_repo = balance_repo

    def stage_posting(
        self, entries: Iterable[JournalEntry], handle: PosterHandle | None = None
    ) -> PosterHandle:
        entries = list(entries)
        if not entries:
            raise PosterStateError("no entries to stage")
        handle = handle or PosterHandle()
        self._ensure_open(handle)

        for entry in entries:
            if entry.is_debit:
                handle.debits.append(entry)
            else:
                handle.credits.append(entry)
            handle.accumulator.apply(entry)
        return handle

    def load_entries(self, entries: Iterable[JournalEntry]) -> PosterHandle:
        return PosterHandle(loaded=list(entries))

    def remove_entries(self, handle: PosterHandle) -> None:
        self._ensure_open(handle)
        for entry in handle.loaded:
            handle.pending_deletion.append(entry)
            handle.accumulator.reverse(entry)
        handle.loaded = []

    def commit_entries(self, handle: PosterHandle) -> None:
        if handle.entries_committed:
            raise PosterStateError("entries already committed")

        staged = handle.staged
        with self._store.transaction("commit_entries"):
            deleted = self._entry_repo.delete_many(
                entry.id for entry in handle.pending_deletion
            )
            self._entry_repo.add_many(staged)
        handle.entries_committed = True
        logger.debug("entries_committed", inserted=len(staged), deleted=deleted)

    def commit_balances(self, handle: PosterHandle) -> None:
        if handle.balances_committed:
            raise PosterStateError("balances already committed")

        with self._store.transaction("commit_balances"):
            deltas = handle.accumulator.commit(self._balance_repo)
        handle.balances_committed = True
        logger.debug("balances_committed", accounts=len(deltas))

    def commit(self, handle: PosterHandle) -> None:
        """Commit entries and balances as one atomic unit."""
        self._ensure_open(handle)
        try:
            with self._store.transaction("commit_posting"):
                self.commit_entries(handle)
                self.commit_balances(handle)
        except Exception:
            # rolled back as a whole, so neither half counts as committed
            handle.entries_committed = False
            handle.balances_committed = False
            raise

    def _ensure_open(self, handle: PosterHandle) -> None:
        if handle.entries_committed or handle.balances_committed:
            raise PosterStateError("handle already committed")
