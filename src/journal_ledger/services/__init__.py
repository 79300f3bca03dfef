from journal_ledger.services.balances import (
    BalanceAccumulator,
    balance_delta,
    compute_balances,
)
from journal_ledger.services.interfaces import BalanceDiscrepancy, PostingService
from journal_ledger.services.poster import JournalPoster, PosterHandle
from journal_ledger.services.posting import PostingServiceImpl

__all__ = [
    "BalanceAccumulator",
    "BalanceDiscrepancy",
    "JournalPoster",
    "PostingService",
    "PostingServiceImpl",
    "PosterHandle",
    "balance_delta",
    "compute_balances",
]
