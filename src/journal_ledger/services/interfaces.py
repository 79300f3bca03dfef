from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from journal_ledger.domain.accounts import AccountBalance
from journal_ledger.domain.filters import FilterRole
from journal_ledger.domain.history import JournalEvent
from journal_ledger.domain.journals import (
    JournalDocument,
    JournalRequest,
    QuickJournalRequest,
)


@dataclass(frozen=True)
class BalanceDiscrepancy:
    account_id: UUID
    stored: Decimal
    computed: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored - self.computed


class PostingService(ABC):
    @abstractmethod
    def create_journal(
        self, request: JournalRequest, user_id: UUID | None = None
    ) -> JournalDocument:
        pass

    @abstractmethod
    def edit_journal(
        self, document_id: UUID, request: JournalRequest, user_id: UUID | None = None
    ) -> JournalDocument:
        pass

    @abstractmethod
    def delete_journal(self, document_id: UUID, user_id: UUID | None = None) -> None:
        pass

    @abstractmethod
    def get_journal(self, document_id: UUID) -> JournalDocument:
        pass

    @abstractmethod
    def list_journals(
        self, filter_roles: list[FilterRole] | list[dict[str, Any]] | None = None
    ) -> list[JournalDocument]:
        pass

    @abstractmethod
    def quick_journal(
        self, request: QuickJournalRequest, user_id: UUID | None = None
    ) -> JournalDocument:
        pass

    @abstractmethod
    def get_journal_history(self, document_id: UUID) -> list[JournalEvent]:
        pass

    @abstractmethod
    def get_account_balance(self, account_id: UUID) -> AccountBalance:
        pass

    @abstractmethod
    def verify_balances(self) -> dict[UUID, BalanceDiscrepancy]:
        pass
