"""Translation request models — requests, statuses, and verification votes.

A request is created Open with its bounty held in escrow, receives exactly
one translation, is put to a verifier panel, and ends Approved (bounty
released to the translator) or Rejected (bounty refunded to the creator).

Request lifecycle: OPEN → SUBMITTED → VERIFYING → APPROVED
                   OPEN / SUBMITTED / VERIFYING → REJECTED

Records are never deleted. Field changes go through the accessor
methods below, which enforce the write-once and terminal-state rules.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from linguamarket.errors import ErrorCode, SettlementError, TransitionError


class RequestStatus(str, enum.Enum):
    """Lifecycle state of a translation request."""
    OPEN = "open"
    SUBMITTED = "submitted"
    VERIFYING = "verifying"
    APPROVED = "approved"
    REJECTED = "rejected"


# Valid request transitions
REQUEST_TRANSITIONS: Dict[RequestStatus, frozenset] = {
    RequestStatus.OPEN: frozenset({
        RequestStatus.SUBMITTED,
        RequestStatus.REJECTED,
    }),
    RequestStatus.SUBMITTED: frozenset({
        RequestStatus.VERIFYING,
        RequestStatus.REJECTED,
    }),
    RequestStatus.VERIFYING: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
    }),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED})


@dataclass
class TranslationRequest:
    """A bounty-backed request to translate a piece of content.

    Mutable — status, translator and approval count change over the
    lifecycle. All other fields are fixed at creation.
    """
    request_id: int
    creator: str
    content_hash: str
    source_lang: str
    target_lang: str
    bounty: int
    approval_threshold: int
    status: RequestStatus = RequestStatus.OPEN
    created_utc: Optional[datetime] = None
    translator: Optional[str] = None
    translation_hash: Optional[str] = None
    verification_count: int = 0
    approved_utc: Optional[datetime] = None
    rejected_utc: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(self, new_status: RequestStatus) -> None:
        """Transition to a new status, validating the transition is legal."""
        allowed = REQUEST_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            code = (
                ErrorCode.REQUEST_CLOSED if self.is_terminal
                else ErrorCode.INVALID_STATUS
            )
            raise TransitionError(
                code,
                f"Invalid request transition: {self.status.value} → {new_status.value}. "
                f"Allowed: {', '.join(sorted(s.value for s in allowed)) or 'none'}",
            )
        self.status = new_status

    def assign_translation(self, translator: str, translation_hash: str) -> None:
        """Record the translator and translation fingerprint (write-once)."""
        if self.translator is not None or self.translation_hash is not None:
            raise SettlementError(
                ErrorCode.ALREADY_SUBMITTED,
                f"Request {self.request_id} already has a translation",
            )
        self.translator = translator
        self.translation_hash = translation_hash

    def record_approval(self) -> int:
        """Count one more approving vote. Returns the new count."""
        if self.status != RequestStatus.VERIFYING:
            raise TransitionError(
                ErrorCode.INVALID_STATUS,
                f"Request {self.request_id} is not verifying ({self.status.value})",
            )
        self.verification_count += 1
        return self.verification_count

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "creator": self.creator,
            "content_hash": self.content_hash,
            "source_lang": self.source_lang,
            "target_lang": self.target_lang,
            "bounty": self.bounty,
            "status": self.status.value,
            "created_utc": self.created_utc.isoformat() if self.created_utc else None,
            "translator": self.translator,
            "translation_hash": self.translation_hash,
            "verification_count": self.verification_count,
            "approval_threshold": self.approval_threshold,
        }


@dataclass(frozen=True)
class VerificationVote:
    """A single verifier's verdict on a request.

    Frozen — votes are immutable once cast. Identity is
    (request_id, verifier).
    """
    request_id: int
    verifier: str
    approved: bool
    cast_utc: datetime
