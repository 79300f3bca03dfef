"""API routes for Journal Ledger."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status

from journal_ledger.api.schemas import (
    AccountBalanceResponse,
    AccountCreate,
    AccountResponse,
    HealthResponse,
    JournalCreate,
    JournalEntryResponse,
    JournalEventResponse,
    JournalResponse,
    QuickJournalCreate,
)
from journal_ledger.container import get_account_repository, get_posting_service
from journal_ledger.domain.accounts import Account, AccountBalance
from journal_ledger.domain.filters import parse_filter_roles
from journal_ledger.domain.history import JournalEvent
from journal_ledger.domain.journals import (
    JournalDocument,
    JournalEntry,
    JournalLine,
    JournalRequest,
    QuickJournalRequest,
)
from journal_ledger.domain.value_objects import AccountType
from journal_ledger.repositories.interfaces import AccountRepository
from journal_ledger.services.interfaces import PostingService

# Create routers
health_router = APIRouter(tags=["health"])
account_router = APIRouter(prefix="/accounts", tags=["accounts"])
journal_router = APIRouter(prefix="/manual-journals", tags=["manual-journals"])
quick_journal_router = APIRouter(
    prefix="/quick-journal-entries", tags=["manual-journals"]
)

PostingServiceDep = Annotated[PostingService, Depends(get_posting_service)]
AccountRepositoryDep = Annotated[AccountRepository, Depends(get_account_repository)]
UserIdHeader = Annotated[UUID | None, Header()]


# Helper functions
def _account_to_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        code=account.code,
        name=account.name,
        account_type=account.account_type.value,
        normal_side=account.normal_side.value if account.normal_side else "",
        is_active=account.is_active,
        created_at=account.created_at,
    )


def _balance_to_response(balance: AccountBalance) -> AccountBalanceResponse:
    return AccountBalanceResponse(
        account_id=balance.account_id,
        balance=str(balance.balance),
        updated_at=balance.updated_at,
    )


def _entry_to_response(entry: JournalEntry) -> JournalEntryResponse:
    return JournalEntryResponse(
        id=entry.id,
        account_id=entry.account_id,
        debit=str(entry.debit_amount) if entry.debit_amount is not None else None,
        credit=str(entry.credit_amount) if entry.credit_amount is not None else None,
        note=entry.note,
        line_index=entry.line_index,
    )


def _journal_to_response(document: JournalDocument) -> JournalResponse:
    """Convert JournalDocument domain object to response schema."""
    return JournalResponse(
        id=document.id,
        journal_number=document.journal_number,
        journal_date=document.journal_date,
        description=document.description,
        reference=document.reference,
        amount=str(document.amount),
        transaction_type=document.transaction_type.value,
        created_by=document.created_by,
        created_at=document.created_at,
        updated_at=document.updated_at,
        entries=[_entry_to_response(e) for e in document.entries],
    )


def _event_to_response(event: JournalEvent) -> JournalEventResponse:
    return JournalEventResponse(
        id=event.id,
        action=event.action.value,
        journal_number=event.journal_number,
        amount=str(event.amount),
        user_id=event.user_id,
        occurred_at=event.occurred_at,
        entries=event.entries,
    )


def _to_request(payload: JournalCreate) -> JournalRequest:
    return JournalRequest(
        journal_number=payload.journal_number,
        journal_date=payload.journal_date,
        lines=[
            JournalLine(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                note=line.note,
            )
            for line in payload.entries
        ],
        description=payload.description,
        reference=payload.reference,
    )


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


# Account endpoints
@account_router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_account(
    payload: AccountCreate, account_repo: AccountRepositoryDep
) -> AccountResponse:
    """Create a new account."""
    account = Account(
        name=payload.name,
        account_type=AccountType(payload.account_type),
        code=payload.code,
    )
    account_repo.add(account)
    return _account_to_response(account)


@account_router.get("", response_model=list[AccountResponse])
def list_accounts(account_repo: AccountRepositoryDep) -> list[AccountResponse]:
    """List all accounts."""
    return [_account_to_response(a) for a in account_repo.list_all()]


@account_router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: UUID, service: PostingServiceDep
) -> AccountBalanceResponse:
    """Get an account's running balance."""
    return _balance_to_response(service.get_account_balance(account_id))


# Manual journal endpoints
@journal_router.post(
    "",
    response_model=JournalResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_journal(
    payload: JournalCreate,
    service: PostingServiceDep,
    x_user_id: UserIdHeader = None,
) -> JournalResponse:
    """Post a new manual journal."""
    document = service.create_journal(_to_request(payload), user_id=x_user_id)
    return _journal_to_response(document)


@journal_router.get("", response_model=list[JournalResponse])
def list_journals(
    service: PostingServiceDep,
    stringified_filter_roles: Annotated[str | None, Query()] = None,
) -> list[JournalResponse]:
    """List manual journals, optionally filtered by JSON-encoded filter roles."""
    roles = parse_filter_roles(stringified_filter_roles)
    return [_journal_to_response(d) for d in service.list_journals(roles)]


@journal_router.get("/{document_id}", response_model=JournalResponse)
def get_journal(document_id: UUID, service: PostingServiceDep) -> JournalResponse:
    """Get a manual journal with its entries."""
    return _journal_to_response(service.get_journal(document_id))


@journal_router.post("/{document_id}", response_model=JournalResponse)
def edit_journal(
    document_id: UUID,
    payload: JournalCreate,
    service: PostingServiceDep,
    x_user_id: UserIdHeader = None,
) -> JournalResponse:
    """Replace a manual journal's entries and fields."""
    document = service.edit_journal(
        document_id, _to_request(payload), user_id=x_user_id
    )
    return _journal_to_response(document)


@journal_router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_journal(
    document_id: UUID,
    service: PostingServiceDep,
    x_user_id: UserIdHeader = None,
) -> None:
    """Delete a manual journal and reverse its balance effects."""
    service.delete_journal(document_id, user_id=x_user_id)


@journal_router.get("/{document_id}/history", response_model=list[JournalEventResponse])
def get_journal_history(
    document_id: UUID, service: PostingServiceDep
) -> list[JournalEventResponse]:
    """Get the create/supersede/delete history of a manual journal."""
    return [_event_to_response(e) for e in service.get_journal_history(document_id)]


# Quick journal endpoint
@quick_journal_router.post(
    "",
    response_model=JournalResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_quick_journal(
    payload: QuickJournalCreate,
    service: PostingServiceDep,
    x_user_id: UserIdHeader = None,
) -> JournalResponse:
    """Move one amount from a credit account to a debit account."""
    request = QuickJournalRequest(
        journal_number=payload.journal_number,
        journal_date=payload.journal_date,
        amount=payload.amount,
        debit_account_id=payload.debit_account_id,
        credit_account_id=payload.credit_account_id,
        note=payload.note,
        description=payload.description,
    )
    document = service.quick_journal(request, user_id=x_user_id)
    return _journal_to_response(document)
