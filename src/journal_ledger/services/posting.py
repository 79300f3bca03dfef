"""Posting service: the create/edit/delete use cases for journal documents."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from journal_ledger.domain.accounts import Account, AccountBalance
from journal_ledger.domain.filters import FilterRole, filter_documents
from journal_ledger.domain.history import JournalEvent
from journal_ledger.domain.journals import (
    JournalDocument,
    JournalEntry,
    JournalLine,
    JournalRequest,
    QuickJournalRequest,
)
from journal_ledger.domain.value_objects import ZERO, JournalAction, ReferenceType
from journal_ledger.exceptions import (
    DocumentNotFoundError,
    JournalValidationError,
    UnknownAccountError,
)
from journal_ledger.logging_config import get_logger
from journal_ledger.repositories.interfaces import (
    AccountBalanceRepository,
    AccountRepository,
    JournalDocumentRepository,
    JournalEntryRepository,
    JournalEventRepository,
    TransactionalStore,
)
from journal_ledger.services.balances import compute_balances
from journal_ledger.services.interfaces import BalanceDiscrepancy, PostingService
from journal_ledger.services.poster import JournalPoster
from journal_ledger.services.validation import (
    JournalTotals,
    check_accounts,
    check_journal_number,
    check_lines,
    check_totals,
    compute_totals,
    filter_lines,
    raise_for_violations,
)

logger = get_logger(__name__)


class PostingServiceImpl(PostingService):
    """Implementation of PostingService on top of a transactional store.

    Every mutating operation runs inside one ``store.transaction()``
    scope: validation reads, entry writes, balance increments, the
    document write and the history event commit together or not at all.
    """

    def __init__(
        self,
        store: TransactionalStore,
        account_repo: AccountRepository,
        document_repo: JournalDocumentRepository,
        entry_repo: JournalEntryRepository,
        balance_repo: AccountBalanceRepository,
        event_repo: JournalEventRepository | None = None,
        *,
        strict_lines: bool = False,
        record_history: bool = True,
    ) -> None:
        self._store = store
        self._account_repo = account_repo
        self._document_repo = document_repo
        self._entry_repo = entry_repo
        self._balance_repo = balance_repo
        self._event_repo = event_repo
        self._strict_lines = strict_lines
        self._record_history = record_history and event_repo is not None
        self._poster = JournalPoster(store, entry_repo, balance_repo)

    def create_journal(
        self, request: JournalRequest, user_id: UUID | None = None
    ) -> JournalDocument:
        """Validate and post a new journal document.

        Args:
            request: Journal number, date and lines to post
            user_id: The acting user, recorded as creator

        Returns:
            The created document with its entries

        Raises:
            InvalidEntryError: If a line is malformed
            UnbalancedJournalError: If totals are zero or don't match
            UnknownAccountError: If any referenced account doesn't exist
            DuplicateJournalNumberError: If the number is already in use
            PersistenceError: If the store rejects the commit
        """
        try:
            with self._store.transaction("create_journal"):
                lines, accounts, totals = self._validate(request)

                document = JournalDocument(
                    journal_number=request.journal_number,
                    journal_date=request.journal_date,
                    amount=totals.credit,
                    description=request.description,
                    reference=request.reference,
                    transaction_type=request.transaction_type,
                    created_by=user_id,
                )
                document.entries = self._build_entries(document, lines, accounts, user_id)

                handle = self._poster.stage_posting(document.entries)
                self._document_repo.add(document)
                self._poster.commit(handle)
                self._record(document, JournalAction.CREATE, user_id)
        except JournalValidationError as e:
            self._log_rejection("create_journal", request.journal_number, e)
            raise

        logger.info(
            "journal_created",
            document_id=str(document.id),
            journal_number=document.journal_number,
            amount=str(document.amount),
            entries=len(document.entries),
        )
        return document

    def edit_journal(
        self, document_id: UUID, request: JournalRequest, user_id: UUID | None = None
    ) -> JournalDocument:
        """Replace a document's entries and fields.

        The old entries are deleted and their balance effects reversed in
        the same scope that inserts the new entries and applies theirs.

        Raises:
            DocumentNotFoundError: If the document is missing or deleted
            JournalValidationError: As for create_journal; the uniqueness
                check ignores the document itself
        """
        try:
            with self._store.transaction("edit_journal"):
                document = self._document_repo.get(document_id, for_update=True)
                if document is None:
                    raise DocumentNotFoundError(document_id)

                lines, accounts, totals = self._validate(request, exclude_id=document_id)

                handle = self._poster.load_entries(
                    self._entry_repo.list_by_reference(document_id)
                )
                self._poster.remove_entries(handle)

                document.journal_number = request.journal_number
                document.journal_date = request.journal_date
                document.amount = totals.credit
                document.description = request.description
                document.reference = request.reference
                document.transaction_type = request.transaction_type
                document.updated_at = datetime.now(UTC)
                document.entries = self._build_entries(document, lines, accounts, user_id)

                self._poster.stage_posting(document.entries, handle=handle)
                self._document_repo.update(document)
                self._poster.commit(handle)
                self._record(document, JournalAction.SUPERSEDE, user_id)
        except JournalValidationError as e:
            self._log_rejection("edit_journal", request.journal_number, e)
            raise

        logger.info(
            "journal_edited",
            document_id=str(document.id),
            journal_number=document.journal_number,
            amount=str(document.amount),
            removed=len(handle.pending_deletion),
            inserted=len(handle.staged),
        )
        return document

    def delete_journal(self, document_id: UUID, user_id: UUID | None = None) -> None:
        """Delete a document, its entries and their balance effects.

        Raises:
            DocumentNotFoundError: If the document is missing or already deleted
        """
        with self._store.transaction("delete_journal"):
            document = self._document_repo.get(document_id, for_update=True)
            if document is None:
                raise DocumentNotFoundError(document_id)

            document.entries = self._entry_repo.list_by_reference(document_id)
            handle = self._poster.load_entries(document.entries)
            self._poster.remove_entries(handle)
            self._poster.commit(handle)

            deleted_at = datetime.now(UTC)
            self._document_repo.mark_deleted(document_id, deleted_at)
            document.deleted_at = deleted_at
            self._record(document, JournalAction.DELETE, user_id)

        logger.info(
            "journal_deleted",
            document_id=str(document_id),
            journal_number=document.journal_number,
            removed=len(handle.pending_deletion),
        )

    def get_journal(self, document_id: UUID) -> JournalDocument:
        with self._store.transaction("get_journal", read_only=True):
            document = self._document_repo.get(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            document.entries = self._entry_repo.list_by_reference(document_id)
        return document

    def list_journals(
        self, filter_roles: list[FilterRole] | list[dict[str, Any]] | None = None
    ) -> list[JournalDocument]:
        """List live documents, optionally narrowed by filter roles."""
        roles = [
            role if isinstance(role, FilterRole) else FilterRole.from_dict(role)
            for role in filter_roles or []
        ]
        with self._store.transaction("list_journals", read_only=True):
            documents = filter_documents(self._document_repo.list_active(), roles)
            for document in documents:
                document.entries = self._entry_repo.list_by_reference(document.id)
        return documents

    def quick_journal(
        self, request: QuickJournalRequest, user_id: UUID | None = None
    ) -> JournalDocument:
        return self.create_journal(request.to_journal_request(), user_id)

    def get_journal_history(self, document_id: UUID) -> list[JournalEvent]:
        """Return the create/supersede/delete events of a document, oldest first.

        Deleted documents keep their history.
        """
        events = (
            self._event_repo.list_by_document(document_id)
            if self._event_repo is not None
            else []
        )
        if not events and self._document_repo.get(document_id) is None:
            raise DocumentNotFoundError(document_id)
        return events

    def get_account_balance(self, account_id: UUID) -> AccountBalance:
        if self._account_repo.get(account_id) is None:
            raise UnknownAccountError([account_id])
        balance = self._balance_repo.get(account_id)
        return balance if balance is not None else AccountBalance(account_id=account_id)

    def verify_balances(self) -> dict[UUID, BalanceDiscrepancy]:
        """Recompute balances from committed entries and compare with stored ones.

        Returns:
            The accounts whose stored running balance disagrees with the
            recomputed one; empty when the ledger is consistent.
        """
        with self._store.transaction("verify_balances", read_only=True):
            computed = compute_balances(self._entry_repo.list_all())
            stored = {
                balance.account_id: balance.balance
                for balance in self._balance_repo.list_all()
            }

        discrepancies: dict[UUID, BalanceDiscrepancy] = {}
        for account_id in stored.keys() | computed.keys():
            expected = computed.get(account_id, ZERO)
            actual = stored.get(account_id, ZERO)
            if actual != expected:
                discrepancies[account_id] = BalanceDiscrepancy(
                    account_id=account_id, stored=actual, computed=expected
                )

        if discrepancies:
            logger.warning("balance_discrepancies_found", accounts=len(discrepancies))
        return discrepancies

    def _validate(
        self, request: JournalRequest, exclude_id: UUID | None = None
    ) -> tuple[list[JournalLine], dict[UUID, Account], JournalTotals]:
        lines = filter_lines(request.lines, strict=self._strict_lines)
        totals = compute_totals(lines)

        violations = check_lines(lines)
        violations += check_totals(totals)

        accounts = self._account_repo.get_many(line.account_id for line in lines)
        violations += check_accounts(lines, accounts)

        existing = self._document_repo.get_by_number(
            request.journal_number, exclude_id=exclude_id
        )
        violations += check_journal_number(request.journal_number, existing)

        raise_for_violations(violations)
        return lines, accounts, totals

    def _build_entries(
        self,
        document: JournalDocument,
        lines: list[JournalLine],
        accounts: dict[UUID, Account],
        user_id: UUID | None,
    ) -> list[JournalEntry]:
        return [
            JournalEntry(
                account_id=line.account_id,
                normal_side=accounts[line.account_id].normal_side,
                debit_amount=line.debit,
                credit_amount=line.credit,
                reference_type=ReferenceType.JOURNAL,
                reference_id=document.id,
                entry_date=document.journal_date,
                note=line.note,
                user_id=user_id,
                line_index=index,
            )
            for index, line in enumerate(lines)
        ]

    def _record(
        self, document: JournalDocument, action: JournalAction, user_id: UUID | None
    ) -> None:
        if self._record_history:
            assert self._event_repo is not None
            self._event_repo.add(JournalEvent.for_document(document, action, user_id))

    def _log_rejection(
        self, operation: str, journal_number: str, error: JournalValidationError
    ) -> None:
        logger.warning(
            "journal_rejected",
            operation=operation,
            journal_number=journal_number,
            error_code=error.error_code,
            violations=[v.error_code for v in error.violations],
        )
