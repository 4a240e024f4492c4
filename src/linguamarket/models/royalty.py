"""Royalty models — share breakdowns and distribution records.

All amounts are integers in the smallest currency unit. Shares are
computed with floor division; any remainder (dust) stays with the
engine and is never claimable.

Invariant: platform_share + translator_share + verifier_pool_share <= total_amount
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional


class ClaimantCategory(str, enum.Enum):
    """Who a royalty entitlement belongs to."""
    TRANSLATOR = "translator"
    VERIFIER = "verifier"
    PLATFORM = "platform"


@dataclass(frozen=True)
class ShareBreakdown:
    """Result of splitting a royalty total.

    Published with every distribution so the split can be audited.
    """
    total_amount: int
    platform_fee_rate_bp: int
    platform_share: int
    remaining: int
    translator_share: int
    verifier_pool_share: int

    @property
    def allocated(self) -> int:
        return self.platform_share + self.translator_share + self.verifier_pool_share

    @property
    def dust(self) -> int:
        return self.total_amount - self.allocated

    def per_verifier_share(self, approving_verifiers: int) -> int:
        """Equal split of the verifier pool, floor division."""
        if approving_verifiers <= 0:
            return 0
        return self.verifier_pool_share // approving_verifiers

    def to_dict(self) -> dict:
        return {
            "total_amount": self.total_amount,
            "platform_fee_rate_bp": self.platform_fee_rate_bp,
            "platform_share": self.platform_share,
            "remaining": self.remaining,
            "translator_share": self.translator_share,
            "verifier_pool_share": self.verifier_pool_share,
            "dust": self.dust,
        }


@dataclass
class RoyaltyDistribution:
    """A revenue-sharing event for an approved request.

    Mutable only in its consumed-entitlement flags: each claimant may
    consume each of their categories once, and the platform share may
    be swept once.
    """
    distribution_id: int
    request_id: int
    breakdown: ShareBreakdown
    created_utc: Optional[datetime] = None
    # claimant → {category: amount paid}
    claimed: Dict[str, Dict[ClaimantCategory, int]] = field(default_factory=dict)
    platform_swept: bool = False
    swept_utc: Optional[datetime] = None

    @property
    def total_amount(self) -> int:
        return self.breakdown.total_amount

    @property
    def platform_share(self) -> int:
        return self.breakdown.platform_share

    @property
    def translator_share(self) -> int:
        return self.breakdown.translator_share

    @property
    def verifier_pool_share(self) -> int:
        return self.breakdown.verifier_pool_share

    @property
    def total_paid(self) -> int:
        paid = sum(sum(c.values()) for c in self.claimed.values())
        if self.platform_swept:
            paid += self.platform_share
        return paid

    def has_claimed(self, claimant: str, category: ClaimantCategory) -> bool:
        return category in self.claimed.get(claimant, {})

    def mark_claimed(
        self, claimant: str, category: ClaimantCategory, amount: int,
    ) -> None:
        """Consume one entitlement (single write per claimant and category)."""
        if self.has_claimed(claimant, category):
            raise ValueError(
                f"{claimant} already claimed {category.value} share "
                f"of distribution {self.distribution_id}"
            )
        self.claimed.setdefault(claimant, {})[category] = amount

    def to_dict(self) -> dict:
        data = {
            "distribution_id": self.distribution_id,
            "request_id": self.request_id,
            "created_utc": self.created_utc.isoformat() if self.created_utc else None,
            "platform_swept": self.platform_swept,
            "claimed": {
                claimant: {c.value: amt for c, amt in cats.items()}
                for claimant, cats in self.claimed.items()
            },
        }
        data.update(self.breakdown.to_dict())
        return data
