"""Compensation subsystem — value transfers and royalty distribution."""

from linguamarket.compensation.royalty import RoyaltyLedger, compute_shares
from linguamarket.compensation.transfers import (
    InMemoryBalances,
    TransferRecord,
    ValueTransfer,
)

__all__ = [
    "InMemoryBalances",
    "RoyaltyLedger",
    "TransferRecord",
    "ValueTransfer",
    "compute_shares",
]
