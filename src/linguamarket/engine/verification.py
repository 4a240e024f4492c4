"""Verification tracker — one immutable vote per verifier per request.

Votes are processed strictly in call order. An approving vote bumps the
request's approval count; the vote that brings the count to the
threshold is the one the service layer settles on. After that the
request is terminal and further votes fail with InvalidStatus.

The set of approving verifiers is fixed once the request is approved,
which is what royalty claims are resolved against.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import structlog

from linguamarket.errors import ErrorCode, SettlementError
from linguamarket.models.request import (
    RequestStatus,
    TranslationRequest,
    VerificationVote,
)


class VerificationTracker:
    """Vote table keyed by (request_id, verifier).

    Usage:
        tracker = VerificationTracker()
        vote = tracker.cast_vote(request, "carol", approved=True)
        if tracker.threshold_reached(request):
            ...  # settle
    """

    def __init__(self) -> None:
        self._votes: Dict[Tuple[int, str], VerificationVote] = {}
        self._approvers: Dict[int, List[str]] = {}  # request_id → approving verifiers, in order
        self._log = structlog.get_logger(__name__).bind(component="verification_tracker")

    def check_vote(self, request: TranslationRequest, verifier: str) -> None:
        """Validate that verifier may vote on request now.

        Raises:
            SettlementError: InvalidStatus, VerificationFailed or
                AlreadySubmitted.
        """
        if request.status != RequestStatus.VERIFYING:
            raise SettlementError(
                ErrorCode.INVALID_STATUS,
                f"Cannot vote on request {request.request_id} in status "
                f"{request.status.value}",
            )
        if verifier == request.translator:
            raise SettlementError(
                ErrorCode.VERIFICATION_FAILED,
                f"Translator {verifier} cannot verify their own translation",
            )
        if (request.request_id, verifier) in self._votes:
            raise SettlementError(
                ErrorCode.ALREADY_SUBMITTED,
                f"{verifier} already voted on request {request.request_id}",
            )

    def cast_vote(
        self,
        request: TranslationRequest,
        verifier: str,
        approved: bool,
        now: Optional[datetime] = None,
    ) -> VerificationVote:
        """Record a vote and, if approving, count it on the request."""
        self.check_vote(request, verifier)
        if now is None:
            now = datetime.now(timezone.utc)

        vote = VerificationVote(
            request_id=request.request_id,
            verifier=verifier,
            approved=approved,
            cast_utc=now,
        )
        if approved:
            request.record_approval()
            self._approvers.setdefault(request.request_id, []).append(verifier)
        self._votes[(request.request_id, verifier)] = vote
        self._log.info(
            "vote_cast", request_id=request.request_id, verifier=verifier,
            approved=approved, approvals=request.verification_count,
        )
        return vote

    def retract_vote(self, request: TranslationRequest, verifier: str) -> None:
        """Undo the most recent vote when its settlement could not complete.

        Only valid while the request is still VERIFYING; once approved,
        votes are permanent.
        """
        if request.status != RequestStatus.VERIFYING:
            raise SettlementError(
                ErrorCode.INVALID_STATUS,
                f"Votes on request {request.request_id} are final",
            )
        vote = self._votes.pop((request.request_id, verifier), None)
        if vote is None:
            return
        if vote.approved:
            self._approvers[request.request_id].remove(verifier)
            request.verification_count -= 1

    @staticmethod
    def threshold_reached(request: TranslationRequest) -> bool:
        return request.verification_count >= request.approval_threshold

    def get_vote(self, request_id: int, verifier: str) -> Optional[VerificationVote]:
        return self._votes.get((request_id, verifier))

    def votes_for(self, request_id: int) -> List[VerificationVote]:
        return [v for (rid, _), v in self._votes.items() if rid == request_id]

    def approving_verifiers(self, request_id: int) -> Tuple[str, ...]:
        return tuple(self._approvers.get(request_id, ()))

    def approval_count(self, request_id: int) -> int:
        return len(self._approvers.get(request_id, ()))

    def has_approved(self, request_id: int, verifier: str) -> bool:
        vote = self._votes.get((request_id, verifier))
        return vote is not None and vote.approved
