"""Domain exception hierarchy for Journal Ledger.

All domain-specific exceptions inherit from JournalLedgerError.
This allows catching all application errors with a single base class
while preserving specificity for individual error types.
"""

from collections.abc import Iterable
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class UnbalancedKind(str, Enum):
    ZERO_TOTAL = "zero_total"
    MISMATCH = "mismatch"


class JournalLedgerError(Exception):
    """Base exception for all Journal Ledger errors.

    Includes a stable error_code for callers, a suggested transport
    status_code for the API adapter, and extra context.
    """

    error_code: str = "JL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class JournalValidationError(JournalLedgerError):
    """Base exception for violations detected before any mutation.

    The raised error is the first violation found; ``violations`` holds
    every violation detected in the same validation pass.
    """

    error_code = "JOURNAL_VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, context=context)
        self.violations: list[JournalValidationError] = [self]

    def attach_violations(self, violations: list["JournalValidationError"]) -> None:
        self.violations = list(violations)
        self.context["violations"] = [
            {"error": v.error_code, "message": v.message} for v in violations
        ]


class InvalidEntryError(JournalValidationError):
    """Raised when a line has both or neither side set, or a non-positive amount."""

    error_code = "INVALID_ENTRY"

    def __init__(
        self,
        reason: str,
        *,
        account_id: UUID | str | None = None,
        debit: Decimal | None = None,
        credit: Decimal | None = None,
        line: int | None = None,
    ) -> None:
        prefix = f"Line {line}: " if line is not None else ""
        super().__init__(
            f"{prefix}Invalid journal entry: {reason}",
            context={
                "line": line,
                "account_id": str(account_id) if account_id is not None else None,
                "debit": str(debit) if debit is not None else None,
                "credit": str(credit) if credit is not None else None,
                "reason": reason,
            },
        )
        self.reason = reason
        self.line = line


class UnbalancedJournalError(JournalValidationError):
    """Raised when journal totals are zero or debits don't equal credits."""

    error_code = "UNBALANCED_JOURNAL"

    def __init__(
        self, kind: UnbalancedKind, total_debit: Decimal, total_credit: Decimal
    ) -> None:
        if kind is UnbalancedKind.ZERO_TOTAL:
            message = (
                "Journal totals must be greater than zero: "
                f"debits={total_debit}, credits={total_credit}"
            )
        else:
            message = (
                f"Journal is unbalanced: debits={total_debit}, credits={total_credit}"
            )
        super().__init__(
            message,
            context={
                "kind": kind.value,
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
            },
        )
        self.kind = kind
        self.total_debit = total_debit
        self.total_credit = total_credit


class UnknownAccountError(JournalValidationError):
    """Raised when one or more referenced accounts do not exist."""

    error_code = "UNKNOWN_ACCOUNT"

    def __init__(self, account_ids: Iterable[UUID | str]) -> None:
        ids = sorted({str(account_id) for account_id in account_ids})
        super().__init__(
            f"Accounts not found: {', '.join(ids)}",
            context={"account_ids": ids},
        )
        self.account_ids = ids


class DuplicateJournalNumberError(JournalValidationError):
    """Raised when a journal number is already used by a live document."""

    error_code = "DUPLICATE_JOURNAL_NUMBER"
    status_code = 409

    def __init__(
        self, journal_number: str, existing_id: UUID | str | None = None
    ) -> None:
        super().__init__(
            f"Journal number already exists: {journal_number}",
            context={
                "journal_number": journal_number,
                "existing_id": str(existing_id) if existing_id else None,
            },
        )
        self.journal_number = journal_number


class InvalidFilterRoleError(JournalValidationError):
    """Raised when filter roles reference fields journals don't have."""

    error_code = "INVALID_FILTER_ROLE"
    status_code = 400

    def __init__(self, fields: Iterable[str], reason: str = "unknown field") -> None:
        field_list = sorted(set(fields))
        super().__init__(
            f"Invalid filter roles ({reason}): {', '.join(field_list)}",
            context={"fields": field_list, "reason": reason},
        )
        self.fields = field_list


# =============================================================================
# Document Errors
# =============================================================================


class DocumentNotFoundError(JournalLedgerError):
    """Raised when a journal document is missing or already deleted."""

    error_code = "DOCUMENT_NOT_FOUND"
    status_code = 404

    def __init__(self, document_id: UUID | str) -> None:
        super().__init__(
            f"Journal document not found: {document_id}",
            context={"document_id": str(document_id)},
        )
        self.document_id = document_id


# =============================================================================
# Poster & Persistence Errors
# =============================================================================


class PosterStateError(JournalLedgerError):
    """Raised when a poster handle is used out of order."""

    error_code = "POSTER_STATE_ERROR"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid poster state: {reason}", context={"reason": reason})


class PersistenceError(JournalLedgerError):
    """Raised when the atomic commit fails for infrastructural reasons."""

    error_code = "PERSISTENCE_ERROR"
    status_code = 503

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(
            f"Persistence failed during {operation}: {detail}",
            context={"operation": operation},
        )
        self.operation = operation
