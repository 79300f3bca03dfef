from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from journal_ledger.domain.value_objects import ZERO, AccountType, NormalSide


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Account:
    name: str
    account_type: AccountType
    id: UUID = field(default_factory=uuid4)
    code: str | None = None
    normal_side: NormalSide | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.normal_side is None:
            self.normal_side = self.account_type.normal_side

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_side is NormalSide.DEBIT


@dataclass
class AccountBalance:
    """Running balance of one account, signed in its normal-side convention."""

    account_id: UUID
    balance: Decimal = ZERO
    updated_at: datetime | None = None

    @property
    def is_zero(self) -> bool:
        return self.balance == ZERO
