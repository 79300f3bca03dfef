"""Pydantic v2 schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# Account Schemas
class AccountCreate(BaseModel):
    """Schema for creating an account."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    account_type: str = Field(..., pattern=r"^(asset|liability|equity|income|expense)$")
    code: str | None = Field(default=None, max_length=50)


class AccountResponse(BaseModel):
    """Schema for account response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str | None
    name: str
    account_type: str
    normal_side: str
    is_active: bool
    created_at: datetime


class AccountBalanceResponse(BaseModel):
    account_id: UUID
    balance: str
    updated_at: datetime | None


# Journal Schemas
class JournalLineCreate(BaseModel):
    """One requested line; zero or missing amounts count as unset."""

    account_id: UUID
    debit: Decimal | None = None
    credit: Decimal | None = None
    note: str = ""


class JournalCreate(BaseModel):
    """Schema for creating or editing a manual journal."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    journal_number: str = Field(..., min_length=1, max_length=100)
    journal_date: date = Field(..., alias="date")
    description: str = ""
    reference: str = ""
    entries: list[JournalLineCreate] = Field(default_factory=list)


class QuickJournalCreate(BaseModel):
    """Schema for a quick journal entry: one amount between two accounts."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    journal_number: str = Field(..., min_length=1, max_length=100)
    journal_date: date = Field(..., alias="date")
    amount: Decimal = Field(..., gt=0)
    debit_account_id: UUID
    credit_account_id: UUID
    note: str = ""
    description: str = ""


class JournalEntryResponse(BaseModel):
    id: UUID
    account_id: UUID
    debit: str | None
    credit: str | None
    note: str
    line_index: int


class JournalResponse(BaseModel):
    """Schema for manual journal response."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    journal_number: str
    journal_date: date = Field(..., alias="date")
    description: str
    reference: str
    amount: str
    transaction_type: str
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime
    entries: list[JournalEntryResponse]


class JournalEventResponse(BaseModel):
    id: UUID
    action: str
    journal_number: str
    amount: str
    user_id: UUID | None
    occurred_at: datetime
    entries: list[dict[str, Any]]


# Health check
class HealthResponse(BaseModel):
    """Schema for health check response."""

    status: str
    version: str = "0.1.0"
