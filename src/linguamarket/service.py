"""Settlement engine — unified facade for the translation marketplace.

This is the primary interface for programmatic access. It owns and
orchestrates every settlement component:
- Request lifecycle (create, submit, start verification, reject)
- Verification (one vote per verifier, threshold-triggered bounty release)
- Royalty distribution (initiate, pull-based claims, platform fee sweep)
- Platform configuration (fee rate, platform wallet)

Every operation returns a SettlementResult. Component-level failures
are raised as SettlementError and converted here; nothing raises across
this boundary for a rejected precondition. Each call validates, then
transfers, then mutates, so a failed transfer leaves all ledger state
unchanged.

Execution model: operations are expected to run one at a time (a single
writer). The only concurrency guard is the royalty ledger's per-distribution
claim lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog

from linguamarket.compensation.royalty import RoyaltyLedger
from linguamarket.compensation.transfers import ValueTransfer
from linguamarket.config import SettlementConfig
from linguamarket.directory.registry import ParticipantDirectory
from linguamarket.engine.requests import RequestLedger
from linguamarket.engine.verification import VerificationTracker
from linguamarket.errors import ErrorCode, SettlementError
from linguamarket.models.participant import ParticipantRole
from linguamarket.models.request import RequestStatus, TranslationRequest, VerificationVote
from linguamarket.models.royalty import RoyaltyDistribution
from linguamarket.persistence.event_log import EventKind, EventLog, EventRecord


@dataclass(frozen=True)
class SettlementResult:
    """Result of a settlement operation.

    On success ``error`` is None and ``data`` carries the operation's
    value. On failure ``error`` names exactly one ErrorCode.
    """
    success: bool
    error: Optional[ErrorCode] = None
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def ok(**data: Any) -> SettlementResult:
        return SettlementResult(success=True, data=data)

    @staticmethod
    def fail(error: ErrorCode, message: str = "") -> SettlementResult:
        return SettlementResult(success=False, error=error, message=message or error.value)


class SettlementEngine:
    """Composition root of the settlement components.

    Usage:
        balances = InMemoryBalances()
        engine = SettlementEngine(balances, SettlementConfig())

        result = engine.create_request("alice", content_hash, "en", "es", 1_000_000, 2)
        request_id = result.data["request_id"]
        engine.submit_translation(request_id, "bob", translation_hash)
        engine.start_verification(request_id)
        engine.cast_vote(request_id, "carol", approved=True)
        engine.cast_vote(request_id, "dave", approved=True)   # bounty released

        result = engine.initiate_distribution(
            request_id, 10_000_000, caller="controller", source_account="licensee",
        )
        engine.claim_share(result.data["distribution_id"], "bob")

    Optional collaborators:
        directory — participant lookups and counters
        event_log — append-only audit trail of every successful mutation
    """

    def __init__(
        self,
        transfers: ValueTransfer,
        config: Optional[SettlementConfig] = None,
        directory: Optional[ParticipantDirectory] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._config = config or SettlementConfig()
        errors = self._config.validate()
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        self._transfers = transfers
        self._directory = directory
        self._event_log = event_log
        self._requests = RequestLedger(
            transfers,
            escrow_account=self._config.escrow_account,
            hash_length=self._config.hash_length,
            max_language_length=self._config.max_language_length,
            min_threshold=self._config.min_approval_threshold,
            max_threshold=self._config.max_approval_threshold,
        )
        self._tracker = VerificationTracker()
        self._royalties = RoyaltyLedger(
            transfers,
            escrow_account=self._config.escrow_account,
            platform_wallet=self._config.platform_wallet,
            platform_fee_rate_bp=self._config.platform_fee_rate_bp,
            max_platform_fee_rate_bp=self._config.max_platform_fee_rate_bp,
            translator_share_bp=self._config.translator_share_bp,
        )
        self._royalty_totals: Dict[str, int] = {}
        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0
        self._audit_degraded = False
        self._log = structlog.get_logger(__name__).bind(component="settlement_engine")

    @property
    def config(self) -> SettlementConfig:
        return self._config

    @property
    def audit_degraded(self) -> bool:
        """True once an audit append failed after state was committed."""
        return self._audit_degraded

    @property
    def royalties(self) -> RoyaltyLedger:
        return self._royalties

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def create_request(
        self,
        creator: str,
        content_hash: str,
        source_lang: str,
        target_lang: str,
        bounty: int,
        approval_threshold: int,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Escrow a bounty and open a translation request."""
        now = now or datetime.now(timezone.utc)
        try:
            request = self._requests.create_request(
                creator, content_hash, source_lang, target_lang,
                bounty, approval_threshold, now=now,
            )
        except SettlementError as e:
            return self._fail("create_request", e)

        self._record_event(EventKind.REQUEST_CREATED, creator, {
            "request_id": request.request_id,
            "bounty": bounty,
            "source_lang": source_lang,
            "target_lang": target_lang,
            "approval_threshold": approval_threshold,
        }, now)
        return SettlementResult.ok(request_id=request.request_id, escrowed=bounty)

    def submit_translation(
        self,
        request_id: int,
        submitter: str,
        translation_hash: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Record the translation for an open request."""
        try:
            request = self._requests.get(request_id)
            if request.status == RequestStatus.OPEN and self._config.require_registration:
                self._check_participant(submitter, ParticipantRole.can_translate)
            request = self._requests.submit_translation(request_id, submitter, translation_hash)
        except SettlementError as e:
            return self._fail("submit_translation", e)

        self._record_event(EventKind.TRANSLATION_SUBMITTED, submitter, {
            "request_id": request_id,
            "translation_hash": translation_hash,
        }, now)
        return SettlementResult.ok(
            request_id=request_id, translator=submitter, status=request.status.value,
        )

    def start_verification(
        self,
        request_id: int,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Open the verifier panel on a submitted request."""
        try:
            request = self._requests.start_verification(request_id)
        except SettlementError as e:
            return self._fail("start_verification", e)

        self._record_event(EventKind.VERIFICATION_STARTED, request.translator or "system", {
            "request_id": request_id,
        }, now)
        return SettlementResult.ok(request_id=request_id, status=request.status.value)

    def cast_vote(
        self,
        request_id: int,
        verifier: str,
        approved: bool,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Record one verifier's vote; settle the bounty on the threshold vote."""
        now = now or datetime.now(timezone.utc)
        settled = False
        try:
            request = self._requests.get(request_id)
            self._tracker.check_vote(request, verifier)
            if self._config.require_registration:
                self._check_participant(
                    verifier, ParticipantRole.can_verify, self._config.min_verifier_stake,
                )
            self._tracker.cast_vote(request, verifier, approved, now=now)
            if approved and self._tracker.threshold_reached(request):
                try:
                    self._requests.release_bounty(request_id, now=now)
                except SettlementError:
                    self._tracker.retract_vote(request, verifier)
                    raise
                settled = True
        except SettlementError as e:
            return self._fail("cast_vote", e)

        self._record_event(EventKind.VOTE_CAST, verifier, {
            "request_id": request_id,
            "approved": approved,
            "verification_count": request.verification_count,
        }, now)
        if approved:
            self._notify("notify_verified", verifier)
        if settled:
            assert request.translator is not None
            self._record_event(EventKind.BOUNTY_RELEASED, request.translator, {
                "request_id": request_id,
                "amount": request.bounty,
                "approving_verifiers": list(self._tracker.approving_verifiers(request_id)),
            }, now)
            self._notify("notify_translated", request.translator)

        return SettlementResult.ok(
            request_id=request_id,
            verifier=verifier,
            approved=approved,
            verification_count=request.verification_count,
            settled=settled,
            status=request.status.value,
        )

    def reject_request(
        self,
        request_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Creator withdraws the request; the bounty is refunded."""
        now = now or datetime.now(timezone.utc)
        try:
            request = self._requests.reject_request(request_id, caller, now=now)
        except SettlementError as e:
            return self._fail("reject_request", e)

        self._record_event(EventKind.REQUEST_REJECTED, caller, {
            "request_id": request_id,
            "refunded": request.bounty,
        }, now)
        return SettlementResult.ok(request_id=request_id, refunded=request.bounty)

    def get_request(self, request_id: int) -> SettlementResult:
        try:
            request = self._requests.get(request_id)
        except SettlementError as e:
            return SettlementResult.fail(e.code, e.message)
        return SettlementResult.ok(request=request)

    def find_request(self, request_id: int) -> Optional[TranslationRequest]:
        return self._requests.find(request_id)

    def votes_for(self, request_id: int) -> list[VerificationVote]:
        return self._tracker.votes_for(request_id)

    # ------------------------------------------------------------------
    # Royalties
    # ------------------------------------------------------------------

    def initiate_distribution(
        self,
        request_id: int,
        total_amount: int,
        platform_fee_rate_bp: Optional[int] = None,
        *,
        caller: str,
        source_account: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Create the royalty distribution for an approved request (controller only).

        The full total is pulled from source_account, so royalty payouts
        are always backed by their own funds and never by escrowed bounties.
        """
        now = now or datetime.now(timezone.utc)
        try:
            self._require_controller(caller)
            request = self._requests.get(request_id)
            if request.status != RequestStatus.APPROVED:
                raise SettlementError(
                    ErrorCode.INVALID_STATUS,
                    f"Royalties require an approved request; {request_id} is "
                    f"{request.status.value}",
                )
            distribution = self._royalties.initiate(
                request_id, total_amount, source_account,
                platform_fee_rate_bp=platform_fee_rate_bp,
                now=now,
            )
        except SettlementError as e:
            return self._fail("initiate_distribution", e)

        self._record_event(EventKind.DISTRIBUTION_INITIATED, caller, {
            "distribution_id": distribution.distribution_id,
            **distribution.breakdown.to_dict(),
            "request_id": request_id,
            "source_account": source_account,
        }, now)
        return SettlementResult.ok(
            distribution_id=distribution.distribution_id,
            **distribution.breakdown.to_dict(),
        )

    def claim_share(
        self,
        distribution_id: int,
        claimant: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Pay claimant their outstanding royalty entitlement."""
        try:
            distribution = self._royalties.get(distribution_id)
            request = self._requests.get(distribution.request_id)
            amount = self._royalties.claim(
                distribution_id,
                claimant,
                translator=request.translator,
                approving_verifiers=self._tracker.approving_verifiers(request.request_id),
            )
        except SettlementError as e:
            return self._fail("claim_share", e)

        self._royalty_totals[claimant] = self._royalty_totals.get(claimant, 0) + amount
        if self._directory is not None and not self._directory.record_royalty(claimant, amount):
            self._log.warning("royalty_total_not_recorded", account=claimant, amount=amount)
        self._record_event(EventKind.SHARE_CLAIMED, claimant, {
            "distribution_id": distribution_id,
            "request_id": distribution.request_id,
            "amount": amount,
        }, now)
        return SettlementResult.ok(distribution_id=distribution_id, claimant=claimant, amount=amount)

    def sweep_platform_fee(
        self,
        distribution_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Move the platform share to the platform wallet (controller only, once).

        Never raises: unauthorized or repeated sweeps return a failed result.
        """
        try:
            self._require_controller(caller)
            amount = self._royalties.sweep_platform_fee(distribution_id, now=now)
        except SettlementError as e:
            return self._fail("sweep_platform_fee", e)

        self._record_event(EventKind.PLATFORM_FEE_SWEPT, caller, {
            "distribution_id": distribution_id,
            "wallet": self._royalties.platform_wallet,
            "amount": amount,
        }, now)
        return SettlementResult.ok(
            distribution_id=distribution_id,
            wallet=self._royalties.platform_wallet,
            amount=amount,
        )

    def set_platform_fee_rate(
        self,
        rate_bp: int,
        *,
        caller: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Change the default platform fee rate (controller only, capped)."""
        try:
            self._require_controller(caller)
            previous = self._royalties.platform_fee_rate_bp
            self._royalties.set_platform_fee_rate(rate_bp)
        except SettlementError as e:
            return self._fail("set_platform_fee_rate", e)

        self._record_event(EventKind.FEE_RATE_CHANGED, caller, {
            "previous_bp": previous,
            "rate_bp": rate_bp,
        }, now)
        return SettlementResult.ok(previous_bp=previous, rate_bp=rate_bp)

    def set_platform_wallet(
        self,
        account: str,
        *,
        caller: str,
        now: Optional[datetime] = None,
    ) -> SettlementResult:
        """Change where platform fees are swept to (controller only)."""
        try:
            self._require_controller(caller)
            if not account:
                raise SettlementError(ErrorCode.NOT_AUTHORIZED, "Platform wallet must be non-empty")
            previous = self._royalties.platform_wallet
            self._royalties.set_platform_wallet(account)
        except SettlementError as e:
            return self._fail("set_platform_wallet", e)

        self._record_event(EventKind.PLATFORM_WALLET_CHANGED, caller, {
            "previous": previous,
            "wallet": account,
        }, now)
        return SettlementResult.ok(previous=previous, wallet=account)

    def get_distribution(self, distribution_id: int) -> SettlementResult:
        try:
            distribution = self._royalties.get(distribution_id)
        except SettlementError as e:
            return SettlementResult.fail(e.code, e.message)
        return SettlementResult.ok(distribution=distribution)

    def distribution_for_request(self, request_id: int) -> Optional[RoyaltyDistribution]:
        return self._royalties.for_request(request_id)

    def get_claimable(self, distribution_id: int, account: str) -> SettlementResult:
        """Outstanding entitlement of account, without claiming it."""
        try:
            distribution = self._royalties.get(distribution_id)
            request = self._requests.get(distribution.request_id)
            amount = self._royalties.claimable(
                distribution_id,
                account,
                translator=request.translator,
                approving_verifiers=self._tracker.approving_verifiers(request.request_id),
            )
        except SettlementError as e:
            return SettlementResult.fail(e.code, e.message)
        return SettlementResult.ok(distribution_id=distribution_id, account=account, amount=amount)

    def get_user_royalties(self, account: str) -> int:
        """Lifetime royalties claimed by account."""
        return self._royalty_totals.get(account, 0)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        """Summary of settlement state for operators."""
        by_status: dict[str, int] = {}
        for request in self._requests.requests():
            by_status[request.status.value] = by_status.get(request.status.value, 0) + 1
        return {
            "requests": {
                "total": self._requests.count,
                "by_status": by_status,
                "escrowed": self._requests.escrowed_total(),
            },
            "distributions": self._royalties.count,
            "platform_fee_rate_bp": self._royalties.platform_fee_rate_bp,
            "platform_wallet": self._royalties.platform_wallet,
            "engine_balance": self._transfers.balance_of(self._config.escrow_account),
            "audit_events": self._event_log.count if self._event_log is not None else 0,
            "audit_degraded": self._audit_degraded,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_controller(self, caller: str) -> None:
        if caller != self._config.controller_id:
            raise SettlementError(
                ErrorCode.NOT_AUTHORIZED,
                f"{caller} is not the settlement controller",
            )

    def _check_participant(
        self,
        account: str,
        role_allows: Callable[[ParticipantRole], bool],
        min_stake: int = 0,
    ) -> None:
        """Directory gate applied when registration is required."""
        if self._directory is None:
            raise SettlementError(
                ErrorCode.NOT_AUTHORIZED,
                "Registration is required but no participant directory is configured",
            )
        role, active = self._directory.is_registered(account)
        if role is None or not active or not role_allows(role):
            raise SettlementError(
                ErrorCode.NOT_AUTHORIZED,
                f"{account} is not an active participant with the required role",
            )
        if min_stake and self._directory.has_stake(account) < min_stake:
            raise SettlementError(
                ErrorCode.NOT_AUTHORIZED,
                f"{account} holds less than the required stake of {min_stake}",
            )

    def _notify(self, method: str, account: str) -> None:
        """Fire-and-forget directory counter update."""
        if self._directory is None:
            return
        if not getattr(self._directory, method)(account):
            self._log.warning("directory_notify_failed", method=method, account=account)

    def _fail(self, operation: str, error: SettlementError) -> SettlementResult:
        self._log.info(
            "operation_rejected", operation=operation,
            error=error.code.value, reason=error.message,
        )
        return SettlementResult.fail(error.code, error.message)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> None:
        """Append an audit event for an operation that has already committed.

        Settlement state is never rolled back here: a failed append marks
        the engine audit-degraded for operator attention.
        """
        if self._event_log is None:
            return
        try:
            self._event_log.append(EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
                timestamp_utc=now,
            ))
        except (ValueError, OSError) as e:
            self._audit_degraded = True
            self._log.error("audit_append_failed", event_kind=kind.value, error=str(e))
