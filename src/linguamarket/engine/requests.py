"""Request ledger — owns translation requests and their escrowed bounties.

Every request is created with its full bounty moved from the creator
into the engine's escrow account. The bounty leaves escrow exactly once:
to the translator when the request is approved, or back to the creator
when the request is rejected.

Ordering inside each mutating call: validate, transfer, then mutate.
A failed transfer therefore leaves no partial record behind.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

from linguamarket.compensation.transfers import ValueTransfer
from linguamarket.engine.state_machine import RequestStateMachine
from linguamarket.errors import (
    ErrorCode,
    InsufficientBalanceError,
    SettlementError,
    TransitionError,
)
from linguamarket.models.request import RequestStatus, TranslationRequest


class RequestLedger:
    """Request table, id counter and escrow movements.

    Usage:
        ledger = RequestLedger(balances, escrow_account="engine")
        request = ledger.create_request("alice", "a" * 64, "en", "es", 1_000_000, 2)
        ledger.submit_translation(request.request_id, "bob", "b" * 64)
        ledger.start_verification(request.request_id)
    """

    def __init__(
        self,
        transfers: ValueTransfer,
        escrow_account: str,
        hash_length: int = 64,
        max_language_length: int = 10,
        min_threshold: int = 1,
        max_threshold: int = 10,
    ) -> None:
        self._transfers = transfers
        self._escrow_account = escrow_account
        self._hash_length = hash_length
        self._max_language_length = max_language_length
        self._min_threshold = min_threshold
        self._max_threshold = max_threshold
        self._requests: Dict[int, TranslationRequest] = {}
        self._next_id = 0
        self._log = structlog.get_logger(__name__).bind(component="request_ledger")

    @property
    def escrow_account(self) -> str:
        return self._escrow_account

    def create_request(
        self,
        creator: str,
        content_hash: str,
        source_lang: str,
        target_lang: str,
        bounty: int,
        approval_threshold: int,
        now: Optional[datetime] = None,
    ) -> TranslationRequest:
        """Validate, escrow the bounty, and record a new OPEN request.

        Raises:
            SettlementError: InvalidHash, InvalidLanguage,
                InsufficientBounty or InvalidThreshold.
        """
        self._check_hash(content_hash)
        for lang in (source_lang, target_lang):
            if not lang or len(lang) > self._max_language_length:
                raise SettlementError(
                    ErrorCode.INVALID_LANGUAGE,
                    f"Language code must be 1-{self._max_language_length} "
                    f"characters, got {lang!r}",
                )
        if bounty <= 0:
            raise SettlementError(
                ErrorCode.INSUFFICIENT_BOUNTY, "Bounty must be positive",
            )
        if not self._min_threshold <= approval_threshold <= self._max_threshold:
            raise SettlementError(
                ErrorCode.INVALID_THRESHOLD,
                f"Approval threshold must be in [{self._min_threshold}, "
                f"{self._max_threshold}], got {approval_threshold}",
            )
        if now is None:
            now = datetime.now(timezone.utc)

        self._move(creator, self._escrow_account, bounty, ErrorCode.INSUFFICIENT_BOUNTY)

        request = TranslationRequest(
            request_id=self._next_id,
            creator=creator,
            content_hash=content_hash,
            source_lang=source_lang,
            target_lang=target_lang,
            bounty=bounty,
            approval_threshold=approval_threshold,
            created_utc=now,
        )
        self._requests[request.request_id] = request
        self._next_id += 1
        self._log.info(
            "request_created", request_id=request.request_id,
            creator=creator, bounty=bounty, threshold=approval_threshold,
        )
        return request

    def submit_translation(
        self,
        request_id: int,
        submitter: str,
        translation_hash: str,
    ) -> TranslationRequest:
        """Record the translation. Transitions: OPEN → SUBMITTED."""
        request = self.get(request_id)
        if request.status != RequestStatus.OPEN:
            raise SettlementError(
                ErrorCode.REQUEST_CLOSED,
                f"Request {request_id} is not open ({request.status.value})",
            )
        self._check_hash(translation_hash)
        request.assign_translation(submitter, translation_hash)
        self._apply(request, RequestStatus.SUBMITTED)
        self._log.info("translation_submitted", request_id=request_id, translator=submitter)
        return request

    def start_verification(self, request_id: int) -> TranslationRequest:
        """Open the verifier panel. Transitions: SUBMITTED → VERIFYING."""
        request = self.get(request_id)
        if request.status != RequestStatus.SUBMITTED:
            raise SettlementError(
                ErrorCode.INVALID_STATUS,
                f"Request {request_id} is not submitted ({request.status.value})",
            )
        if request.translator is None:
            raise SettlementError(
                ErrorCode.NO_TRANSLATION, f"Request {request_id} has no translation",
            )
        self._apply(request, RequestStatus.VERIFYING)
        self._log.info("verification_started", request_id=request_id)
        return request

    def release_bounty(
        self,
        request_id: int,
        now: Optional[datetime] = None,
    ) -> TranslationRequest:
        """Pay the full bounty to the translator. Transitions: VERIFYING → APPROVED.

        Only called once the approval count has reached the threshold.
        """
        request = self.get(request_id)
        errors = RequestStateMachine.validate_transition(request, RequestStatus.APPROVED)
        if errors:
            raise TransitionError(ErrorCode.INVALID_STATUS, "; ".join(errors))
        assert request.translator is not None
        self._move(
            self._escrow_account, request.translator, request.bounty,
            ErrorCode.INSUFFICIENT_BOUNTY,
        )
        self._apply(request, RequestStatus.APPROVED, now)
        self._log.info(
            "bounty_released", request_id=request_id,
            translator=request.translator, amount=request.bounty,
        )
        return request

    def reject_request(
        self,
        request_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> TranslationRequest:
        """Refund the creator. Transitions: any non-terminal → REJECTED."""
        request = self.get(request_id)
        if caller != request.creator:
            raise SettlementError(
                ErrorCode.NOT_AUTHORIZED,
                f"Only the creator may reject request {request_id}",
            )
        if request.is_terminal:
            raise SettlementError(
                ErrorCode.REQUEST_CLOSED,
                f"Request {request_id} is already {request.status.value}",
            )
        self._move(
            self._escrow_account, request.creator, request.bounty,
            ErrorCode.INSUFFICIENT_BOUNTY,
        )
        self._apply(request, RequestStatus.REJECTED, now)
        self._log.info(
            "request_rejected", request_id=request_id, refunded=request.bounty,
        )
        return request

    def get(self, request_id: int) -> TranslationRequest:
        """Look up a request; RequestNotFound if absent."""
        request = self._requests.get(request_id)
        if request is None:
            raise SettlementError(
                ErrorCode.REQUEST_NOT_FOUND, f"Unknown request ID: {request_id}",
            )
        return request

    def find(self, request_id: int) -> Optional[TranslationRequest]:
        return self._requests.get(request_id)

    def requests(self, status: Optional[RequestStatus] = None) -> List[TranslationRequest]:
        if status is None:
            return list(self._requests.values())
        return [r for r in self._requests.values() if r.status == status]

    def escrowed_total(self) -> int:
        """Sum of bounties still held for non-terminal requests."""
        return sum(r.bounty for r in self._requests.values() if not r.is_terminal)

    @property
    def count(self) -> int:
        return len(self._requests)

    def _check_hash(self, value: str) -> None:
        if not value or len(value) != self._hash_length:
            raise SettlementError(
                ErrorCode.INVALID_HASH,
                f"Hash must be exactly {self._hash_length} characters, "
                f"got {len(value) if value else 0}",
            )

    def _move(self, source: str, destination: str, amount: int, code: ErrorCode) -> None:
        try:
            self._transfers.transfer(source, destination, amount)
        except InsufficientBalanceError as e:
            raise SettlementError(code, str(e)) from e

    @staticmethod
    def _apply(
        request: TranslationRequest,
        target: RequestStatus,
        now: Optional[datetime] = None,
    ) -> None:
        errors = RequestStateMachine.apply_transition(request, target, now)
        if errors:
            raise TransitionError(ErrorCode.INVALID_STATUS, "; ".join(errors))
