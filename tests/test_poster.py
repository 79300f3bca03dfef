"""Tests for the journal poster."""

import sqlite3
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest

from journal_ledger.domain.accounts import Account
from journal_ledger.domain.journals import JournalEntry
from journal_ledger.exceptions import PersistenceError, PosterStateError
from journal_ledger.repositories.sqlite import (
    SQLiteAccountBalanceRepository,
    SQLiteDatabase,
    SQLiteJournalEntryRepository,
)
from journal_ledger.services.poster import JournalPoster, PosterHandle


@pytest.fixture
def poster(
    db: SQLiteDatabase,
    entry_repo: SQLiteJournalEntryRepository,
    balance_repo: SQLiteAccountBalanceRepository,
) -> JournalPoster:
    return JournalPoster(db, entry_repo, balance_repo)


def _entries(cash: Account, revenue: Account, amount: str, reference_id=None):
    reference_id = reference_id or uuid4()
    return [
        JournalEntry(
            account_id=cash.id,
            normal_side=cash.normal_side,
            debit_amount=Decimal(amount),
            reference_id=reference_id,
            line_index=0,
        ),
        JournalEntry(
            account_id=revenue.id,
            normal_side=revenue.normal_side,
            credit_amount=Decimal(amount),
            reference_id=reference_id,
            line_index=1,
        ),
    ]


def _balance(balance_repo: SQLiteAccountBalanceRepository, account: Account) -> Decimal:
    balance = balance_repo.get(account.id)
    return balance.balance if balance else Decimal("0")


class TestStagePosting:
    def test_empty_batch_is_rejected(self, poster: JournalPoster):
        with pytest.raises(PosterStateError):
            poster.stage_posting([])

    def test_splits_by_side(self, poster, cash_account, revenue_account):
        handle = poster.stage_posting(_entries(cash_account, revenue_account, "100"))

        assert [e.account_id for e in handle.debits] == [cash_account.id]
        assert [e.account_id for e in handle.credits] == [revenue_account.id]
        assert len(handle.staged) == 2
        assert not handle.is_committed

    def test_staging_writes_nothing(
        self, poster, entry_repo, balance_repo, cash_account, revenue_account
    ):
        poster.stage_posting(_entries(cash_account, revenue_account, "100"))

        assert list(entry_repo.list_all()) == []
        assert list(balance_repo.list_all()) == []


class TestCommit:
    def test_commit_writes_entries_and_balances(
        self, poster, entry_repo, balance_repo, cash_account, revenue_account
    ):
        entries = _entries(cash_account, revenue_account, "100")
        handle = poster.stage_posting(entries)

        poster.commit(handle)

        assert handle.is_committed
        assert {e.id for e in entry_repo.list_all()} == {e.id for e in entries}
        assert _balance(balance_repo, cash_account) == Decimal("100")
        assert _balance(balance_repo, revenue_account) == Decimal("100")

    def test_commit_steps_can_run_separately(
        self, poster, entry_repo, balance_repo, cash_account, revenue_account
    ):
        handle = poster.stage_posting(_entries(cash_account, revenue_account, "10"))

        poster.commit_entries(handle)
        assert len(list(entry_repo.list_all())) == 2
        assert list(balance_repo.list_all()) == []

        poster.commit_balances(handle)
        assert _balance(balance_repo, cash_account) == Decimal("10")

    def test_committing_twice_is_rejected(self, poster, cash_account, revenue_account):
        handle = poster.stage_posting(_entries(cash_account, revenue_account, "10"))
        poster.commit(handle)

        with pytest.raises(PosterStateError):
            poster.commit(handle)
        with pytest.raises(PosterStateError):
            poster.stage_posting(_entries(cash_account, revenue_account, "1"), handle)

    def test_failed_balance_write_rolls_back_entries(
        self, poster, entry_repo, balance_repo, cash_account, revenue_account
    ):
        handle = poster.stage_posting(_entries(cash_account, revenue_account, "100"))

        with patch.object(
            SQLiteAccountBalanceRepository,
            "apply_deltas",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with pytest.raises(PersistenceError) as exc_info:
                poster.commit(handle)

        assert exc_info.value.operation == "commit_posting"
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
        assert list(entry_repo.list_all()) == []
        assert list(balance_repo.list_all()) == []
        assert not handle.entries_committed
        assert not handle.balances_committed


class TestRemoval:
    def test_remove_reverses_balances_and_deletes_entries(
        self, poster, entry_repo, balance_repo, cash_account, revenue_account
    ):
        entries = _entries(cash_account, revenue_account, "100")
        poster.commit(poster.stage_posting(entries))

        handle = poster.load_entries(entry_repo.list_all())
        poster.remove_entries(handle)
        poster.commit(handle)

        assert handle.loaded == []
        assert len(handle.pending_deletion) == 2
        assert list(entry_repo.list_all()) == []
        assert _balance(balance_repo, cash_account) == Decimal("0")
        assert _balance(balance_repo, revenue_account) == Decimal("0")

    def test_handle_reuse_replaces_entries(
        self, poster, entry_repo, balance_repo, cash_account, revenue_account
    ):
        reference_id = uuid4()
        poster.commit(
            poster.stage_posting(
                _entries(cash_account, revenue_account, "100", reference_id)
            )
        )

        handle = poster.load_entries(entry_repo.list_by_reference(reference_id))
        poster.remove_entries(handle)
        replacement = _entries(cash_account, revenue_account, "40", reference_id)
        poster.stage_posting(replacement, handle=handle)
        poster.commit(handle)

        assert {e.id for e in entry_repo.list_by_reference(reference_id)} == {
            e.id for e in replacement
        }
        assert _balance(balance_repo, cash_account) == Decimal("40")
        assert _balance(balance_repo, revenue_account) == Decimal("40")

    def test_remove_on_committed_handle_is_rejected(self, poster):
        handle = PosterHandle(entries_committed=True, balances_committed=True)

        with pytest.raises(PosterStateError):
            poster.remove_entries(handle)
