"""Tests for the domain exception hierarchy."""

from decimal import Decimal
from uuid import uuid4

from journal_ledger.domain.value_objects import UnbalancedKind
from journal_ledger.exceptions import (
    DocumentNotFoundError,
    DuplicateJournalNumberError,
    InvalidEntryError,
    InvalidFilterRoleError,
    JournalLedgerError,
    JournalValidationError,
    PersistenceError,
    PosterStateError,
    UnbalancedJournalError,
    UnknownAccountError,
)


class TestStatusCodes:
    def test_validation_errors_are_unprocessable(self):
        errors = [
            InvalidEntryError("amount must be positive"),
            UnbalancedJournalError(UnbalancedKind.MISMATCH, Decimal("1"), Decimal("2")),
            UnknownAccountError([uuid4()]),
        ]

        for error in errors:
            assert isinstance(error, JournalValidationError)
            assert error.status_code == 422

    def test_specific_status_codes(self):
        assert DuplicateJournalNumberError("J-1").status_code == 409
        assert InvalidFilterRoleError(["colour"]).status_code == 400
        assert DocumentNotFoundError(uuid4()).status_code == 404
        assert PersistenceError("commit", "disk full").status_code == 503
        assert PosterStateError("already committed").status_code == 500

    def test_not_found_is_not_a_validation_error(self):
        assert not isinstance(DocumentNotFoundError(uuid4()), JournalValidationError)
        assert isinstance(DocumentNotFoundError(uuid4()), JournalLedgerError)


class TestToDict:
    def test_serializes_code_message_and_context(self):
        document_id = uuid4()

        data = DocumentNotFoundError(document_id).to_dict()

        assert data == {
            "error": "DOCUMENT_NOT_FOUND",
            "message": f"Journal document not found: {document_id}",
            "context": {"document_id": str(document_id)},
        }

    def test_invalid_entry_context(self):
        account_id = uuid4()

        error = InvalidEntryError(
            "both debit and credit are set",
            account_id=account_id,
            debit=Decimal("5"),
            credit=Decimal("5"),
            line=3,
        )

        assert error.message.startswith("Line 3: ")
        assert error.context["account_id"] == str(account_id)
        assert error.context["debit"] == "5"
        assert error.line == 3

    def test_zero_total_message(self):
        error = UnbalancedJournalError(UnbalancedKind.ZERO_TOTAL, Decimal("0"), Decimal("0"))

        assert "greater than zero" in error.message
        assert error.context["kind"] == "zero_total"


class TestViolations:
    def test_single_violation_lists_itself(self):
        error = UnknownAccountError([uuid4()])

        assert error.violations == [error]
        assert "violations" not in error.context

    def test_attach_violations(self):
        first = DuplicateJournalNumberError("J-1")
        second = InvalidEntryError("amount must be positive", line=0)

        first.attach_violations([first, second])

        assert first.violations == [first, second]
        assert [v["error"] for v in first.context["violations"]] == [
            "DUPLICATE_JOURNAL_NUMBER",
            "INVALID_ENTRY",
        ]
