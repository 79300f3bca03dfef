"""Journal history records: the create/supersede/delete trail of a document."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from journal_ledger.domain.journals import JournalDocument, JournalEntry
from journal_ledger.domain.value_objects import JournalAction


def _utc_now() -> datetime:
    return datetime.now(UTC)


def snapshot_entries(entries: list[JournalEntry]) -> list[dict[str, Any]]:
    return [
        {
            "id": str(entry.id),
            "account_id": str(entry.account_id),
            "debit": str(entry.debit_amount) if entry.debit_amount is not None else None,
            "credit": str(entry.credit_amount)
            if entry.credit_amount is not None
            else None,
            "note": entry.note,
        }
        for entry in entries
    ]


@dataclass
class JournalEvent:
    document_id: UUID
    action: JournalAction
    journal_number: str
    amount: Decimal
    id: UUID = field(default_factory=uuid4)
    user_id: UUID | None = None
    occurred_at: datetime = field(default_factory=_utc_now)
    entries: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def for_document(
        cls,
        document: JournalDocument,
        action: JournalAction,
        user_id: UUID | None,
    ) -> JournalEvent:
        return cls(
            document_id=document.id,
            action=action,
            journal_number=document.journal_number,
            amount=document.amount,
            user_id=user_id,
            entries=snapshot_entries(document.entries),
        )

    @property
    def is_terminal(self) -> bool:
        return self.action is JournalAction.DELETE
