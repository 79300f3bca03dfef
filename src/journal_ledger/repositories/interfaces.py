from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from journal_ledger.domain.accounts import Account, AccountBalance
from journal_ledger.domain.history import JournalEvent
from journal_ledger.domain.journals import JournalDocument, JournalEntry
from journal_ledger.domain.value_objects import ReferenceType


class TransactionalStore(ABC):
    """A durable store able to run a block of reads and writes atomically.

    ``transaction()`` opens one atomic scope. Nested scopes join the
    outermost one, so only the outermost scope commits. Any driver error
    inside the scope rolls everything back and surfaces as
    PersistenceError. A ``read_only`` scope sees one consistent snapshot
    and takes no write lock.
    """

    @abstractmethod
    def initialize(self) -> None:
        pass

    @abstractmethod
    def transaction(
        self, operation: str = "transaction", *, read_only: bool = False
    ) -> AbstractContextManager[Any]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class AccountRepository(ABC):
    @abstractmethod
    def add(self, account: Account) -> None:
        pass

    @abstractmethod
    def get(self, account_id: UUID) -> Account | None:
        pass

    @abstractmethod
    def get_many(self, account_ids: Iterable[UUID]) -> dict[UUID, Account]:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[Account]:
        pass

    @abstractmethod
    def update(self, account: Account) -> None:
        pass


class JournalDocumentRepository(ABC):
    @abstractmethod
    def add(self, document: JournalDocument) -> None:
        pass

    @abstractmethod
    def get(
        self, document_id: UUID, *, for_update: bool = False
    ) -> JournalDocument | None:
        """Get a live (non-deleted) document, without entries."""

    @abstractmethod
    def get_by_number(
        self, journal_number: str, exclude_id: UUID | None = None
    ) -> JournalDocument | None:
        pass

    @abstractmethod
    def list_active(self) -> Iterable[JournalDocument]:
        pass

    @abstractmethod
    def update(self, document: JournalDocument) -> None:
        pass

    @abstractmethod
    def mark_deleted(self, document_id: UUID, deleted_at: datetime) -> None:
        pass


class JournalEntryRepository(ABC):
    @abstractmethod
    def add_many(self, entries: Iterable[JournalEntry]) -> None:
        pass

    @abstractmethod
    def list_by_reference(
        self,
        reference_id: UUID,
        reference_types: Iterable[ReferenceType] = (
            ReferenceType.JOURNAL,
            ReferenceType.MANUAL_JOURNAL,
        ),
    ) -> list[JournalEntry]:
        pass

    @abstractmethod
    def delete_many(self, entry_ids: Iterable[UUID]) -> int:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[JournalEntry]:
        pass


class AccountBalanceRepository(ABC):
    @abstractmethod
    def get(self, account_id: UUID) -> AccountBalance | None:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[AccountBalance]:
        pass

    @abstractmethod
    def apply_deltas(self, deltas: Mapping[UUID, Decimal]) -> None:
        """Atomically add each delta to the account's running balance.

        Must be called inside a transaction; the increment happens in the
        store, never as a read-modify-write computed by the caller.
        """


class JournalEventRepository(ABC):
    @abstractmethod
    def add(self, event: JournalEvent) -> None:
        pass

    @abstractmethod
    def list_by_document(self, document_id: UUID) -> list[JournalEvent]:
        pass
