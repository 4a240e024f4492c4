"""Royalty ledger — splits revenue from an approved translation and pays it out.

Split formula (integer floor division throughout):

    platform_share      = total × fee_rate_bp / 10000
    remaining           = total − platform_share
    translator_share    = remaining × translator_share_bp / 10000   (70%)
    verifier_pool_share = remaining − translator_share               (30%)
    per_verifier        = verifier_pool_share / approving_verifiers

Every distribution is funded at creation: the full total is moved from
a revenue source into the engine account, so payouts never draw on
escrowed bounties held in the same account.

Payout is pull-based. Each claimant consumes each of their entitlements
once; the platform share is swept once by the trusted controller. Any
remainder from the divisions stays in the engine account and is never
claimable.

Claims against one distribution are mutually exclusive: a claim that
arrives while another claim on the same distribution is in flight fails
with DistributionLocked. Claims on different distributions do not block
each other.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Sequence

import structlog

from linguamarket.compensation.transfers import ValueTransfer
from linguamarket.errors import ErrorCode, InsufficientBalanceError, SettlementError
from linguamarket.models.royalty import (
    ClaimantCategory,
    RoyaltyDistribution,
    ShareBreakdown,
)

BASIS_POINTS = 10_000
DEFAULT_TRANSLATOR_SHARE_BP = 7_000


def compute_shares(
    total_amount: int,
    platform_fee_rate_bp: int,
    translator_share_bp: int = DEFAULT_TRANSLATOR_SHARE_BP,
) -> ShareBreakdown:
    """Split a royalty total into platform, translator and verifier-pool shares."""
    if total_amount <= 0:
        raise SettlementError(
            ErrorCode.INSUFFICIENT_ROYALTY, "Royalty total must be positive",
        )
    if not 0 <= platform_fee_rate_bp <= BASIS_POINTS:
        raise SettlementError(
            ErrorCode.INVALID_FEE_RATE,
            f"Fee rate must be in [0, {BASIS_POINTS}] bp, got {platform_fee_rate_bp}",
        )
    platform_share = total_amount * platform_fee_rate_bp // BASIS_POINTS
    remaining = total_amount - platform_share
    translator_share = remaining * translator_share_bp // BASIS_POINTS
    return ShareBreakdown(
        total_amount=total_amount,
        platform_fee_rate_bp=platform_fee_rate_bp,
        platform_share=platform_share,
        remaining=remaining,
        translator_share=translator_share,
        verifier_pool_share=remaining - translator_share,
    )


class RoyaltyLedger:
    """Distribution table, request index, consumed-entitlement flags.

    Eligibility (who the translator is, who approved) is resolved by the
    caller from the request and vote records and passed in; the ledger
    only knows amounts and what has already been paid.

    Usage:
        ledger = RoyaltyLedger(balances, escrow_account="engine", platform_wallet="platform")
        dist = ledger.initiate(0, 10_000_000, source_account="licensee")
        paid = ledger.claim(dist.distribution_id, "bob", translator="bob",
                            approving_verifiers=("carol", "dave"))
    """

    def __init__(
        self,
        transfers: ValueTransfer,
        escrow_account: str,
        platform_wallet: str,
        platform_fee_rate_bp: int = 500,
        max_platform_fee_rate_bp: int = 1_000,
        translator_share_bp: int = DEFAULT_TRANSLATOR_SHARE_BP,
    ) -> None:
        self._transfers = transfers
        self._escrow_account = escrow_account
        self._platform_wallet = platform_wallet
        self._max_fee_rate_bp = max_platform_fee_rate_bp
        self._translator_share_bp = translator_share_bp
        self._fee_rate_bp = self._check_fee_rate(platform_fee_rate_bp)
        self._distributions: Dict[int, RoyaltyDistribution] = {}
        self._by_request: Dict[int, int] = {}
        self._next_id = 0
        self._guard = threading.Lock()
        self._claims_in_flight: set[int] = set()
        self._log = structlog.get_logger(__name__).bind(component="royalty_ledger")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def platform_fee_rate_bp(self) -> int:
        return self._fee_rate_bp

    @property
    def platform_wallet(self) -> str:
        return self._platform_wallet

    def set_platform_fee_rate(self, rate_bp: int) -> None:
        self._fee_rate_bp = self._check_fee_rate(rate_bp)

    def set_platform_wallet(self, account: str) -> None:
        self._platform_wallet = account

    # ------------------------------------------------------------------
    # Distribution lifecycle
    # ------------------------------------------------------------------

    def initiate(
        self,
        request_id: int,
        total_amount: int,
        source_account: str,
        platform_fee_rate_bp: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> RoyaltyDistribution:
        """Create the single distribution for a request.

        The total is moved from source_account into the engine account
        before the distribution is recorded.

        Raises:
            SettlementError: AlreadyDistributed, InsufficientRoyalty or
                InvalidFeeRate.
        """
        if request_id in self._by_request:
            raise SettlementError(
                ErrorCode.ALREADY_DISTRIBUTED,
                f"Request {request_id} already has distribution "
                f"{self._by_request[request_id]}",
            )
        rate = self._fee_rate_bp if platform_fee_rate_bp is None else self._check_fee_rate(
            platform_fee_rate_bp
        )
        breakdown = compute_shares(total_amount, rate, self._translator_share_bp)
        if now is None:
            now = datetime.now(timezone.utc)

        self._move(source_account, self._escrow_account, total_amount)

        distribution = RoyaltyDistribution(
            distribution_id=self._next_id,
            request_id=request_id,
            breakdown=breakdown,
            created_utc=now,
        )
        self._distributions[distribution.distribution_id] = distribution
        self._by_request[request_id] = distribution.distribution_id
        self._next_id += 1
        self._log.info(
            "distribution_initiated",
            distribution_id=distribution.distribution_id,
            request_id=request_id,
            total=total_amount,
            platform_share=breakdown.platform_share,
            translator_share=breakdown.translator_share,
            verifier_pool_share=breakdown.verifier_pool_share,
        )
        return distribution

    def entitlements(
        self,
        distribution: RoyaltyDistribution,
        claimant: str,
        translator: Optional[str],
        approving_verifiers: Sequence[str],
    ) -> Dict[ClaimantCategory, int]:
        """What claimant is owed, whether consumed or not.

        A claimant holds at most one category. The translator role takes
        precedence: a translator who also appears among the approving
        verifiers is owed the translator share only.
        """
        if translator is not None and claimant == translator:
            return {ClaimantCategory.TRANSLATOR: distribution.translator_share}
        if claimant in approving_verifiers:
            return {
                ClaimantCategory.VERIFIER: distribution.breakdown.per_verifier_share(
                    len(approving_verifiers)
                )
            }
        return {}

    def claimable(
        self,
        distribution_id: int,
        claimant: str,
        translator: Optional[str],
        approving_verifiers: Sequence[str],
    ) -> int:
        """Outstanding (unconsumed) amount claimant could pull right now."""
        distribution = self.get(distribution_id)
        owed = self.entitlements(distribution, claimant, translator, approving_verifiers)
        return sum(
            amount for category, amount in owed.items()
            if not distribution.has_claimed(claimant, category)
        )

    def claim(
        self,
        distribution_id: int,
        claimant: str,
        translator: Optional[str],
        approving_verifiers: Sequence[str],
    ) -> int:
        """Pay claimant their outstanding entitlement. Returns the amount paid.

        Raises:
            SettlementError: RequestNotFound, DistributionLocked,
                NotAuthorized, AlreadyDistributed or InsufficientRoyalty.
        """
        distribution = self.get(distribution_id)
        with self.exclusive(distribution_id):
            owed = self.entitlements(distribution, claimant, translator, approving_verifiers)
            if not owed:
                raise SettlementError(
                    ErrorCode.NOT_AUTHORIZED,
                    f"{claimant} has no entitlement in distribution {distribution_id}",
                )
            outstanding = {
                category: amount for category, amount in owed.items()
                if not distribution.has_claimed(claimant, category)
            }
            if not outstanding:
                raise SettlementError(
                    ErrorCode.ALREADY_DISTRIBUTED,
                    f"{claimant} already claimed from distribution {distribution_id}",
                )
            amount = sum(outstanding.values())
            if amount == 0:
                raise SettlementError(
                    ErrorCode.NOT_AUTHORIZED,
                    f"{claimant}'s share of distribution {distribution_id} rounds to zero",
                )

            self._move(self._escrow_account, claimant, amount)
            for category, share in outstanding.items():
                distribution.mark_claimed(claimant, category, share)

        self._log.info(
            "share_claimed", distribution_id=distribution_id, claimant=claimant,
            amount=amount, categories=[c.value for c in outstanding],
        )
        return amount

    def sweep_platform_fee(
        self,
        distribution_id: int,
        now: Optional[datetime] = None,
    ) -> int:
        """Move the platform share to the platform wallet, once."""
        distribution = self.get(distribution_id)
        if distribution.platform_swept:
            raise SettlementError(
                ErrorCode.ALREADY_DISTRIBUTED,
                f"Platform fee of distribution {distribution_id} already swept",
            )
        if now is None:
            now = datetime.now(timezone.utc)
        if distribution.platform_share > 0:
            self._move(self._escrow_account, self._platform_wallet, distribution.platform_share)
        distribution.platform_swept = True
        distribution.swept_utc = now
        self._log.info(
            "platform_fee_swept", distribution_id=distribution_id,
            wallet=self._platform_wallet, amount=distribution.platform_share,
        )
        return distribution.platform_share

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, distribution_id: int) -> RoyaltyDistribution:
        distribution = self._distributions.get(distribution_id)
        if distribution is None:
            raise SettlementError(
                ErrorCode.REQUEST_NOT_FOUND,
                f"Unknown distribution ID: {distribution_id}",
            )
        return distribution

    def for_request(self, request_id: int) -> Optional[RoyaltyDistribution]:
        distribution_id = self._by_request.get(request_id)
        if distribution_id is None:
            return None
        return self._distributions[distribution_id]

    @property
    def count(self) -> int:
        return len(self._distributions)

    @contextmanager
    def exclusive(self, distribution_id: int) -> Iterator[None]:
        """Hold the claim guard for one distribution for the duration of a block."""
        with self._guard:
            if distribution_id in self._claims_in_flight:
                raise SettlementError(
                    ErrorCode.DISTRIBUTION_LOCKED,
                    f"Distribution {distribution_id} has a claim in progress",
                )
            self._claims_in_flight.add(distribution_id)
        try:
            yield
        finally:
            with self._guard:
                self._claims_in_flight.discard(distribution_id)

    def is_locked(self, distribution_id: int) -> bool:
        with self._guard:
            return distribution_id in self._claims_in_flight

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_fee_rate(self, rate_bp: int) -> int:
        if not 0 <= rate_bp <= self._max_fee_rate_bp:
            raise SettlementError(
                ErrorCode.INVALID_FEE_RATE,
                f"Platform fee rate must be in [0, {self._max_fee_rate_bp}] bp, "
                f"got {rate_bp}",
            )
        return rate_bp

    def _move(self, source: str, destination: str, amount: int) -> None:
        try:
            self._transfers.transfer(source, destination, amount)
        except InsufficientBalanceError as e:
            raise SettlementError(ErrorCode.INSUFFICIENT_ROYALTY, str(e)) from e
