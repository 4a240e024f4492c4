"""Request state machine — enforces valid request lifecycle transitions.

Request lifecycle:
    OPEN → SUBMITTED → VERIFYING → APPROVED
    Any non-terminal state → REJECTED

State semantics:
- OPEN: bounty escrowed, waiting for a translation.
- SUBMITTED: translation recorded, translator fixed.
- VERIFYING: verifier panel is voting.
- APPROVED: terminal — threshold reached, bounty released to translator.
- REJECTED: terminal — creator withdrew, bounty refunded.

Fail-closed: there are no implicit transitions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from linguamarket.models.request import (
    REQUEST_TRANSITIONS,
    TERMINAL_STATUSES,
    RequestStatus,
    TranslationRequest,
)


class RequestStateMachine:
    """Validates and applies request status transitions.

    Pure computation apart from the status and timestamp fields of the
    request itself. Value transfers and event logging are handled by
    the service layer.
    """

    @staticmethod
    def validate_transition(
        request: TranslationRequest,
        target: RequestStatus,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = request.status
        allowed = REQUEST_TRANSITIONS.get(current, frozenset())

        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid request transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        if target == RequestStatus.SUBMITTED and request.translator is None:
            return [f"Request {request.request_id}: no translator assigned"]
        if target == RequestStatus.VERIFYING and request.translation_hash is None:
            return [f"Request {request.request_id}: no translation submitted"]
        if (
            target == RequestStatus.APPROVED
            and request.verification_count < request.approval_threshold
        ):
            return [
                f"Request {request.request_id}: needs {request.approval_threshold} "
                f"approvals, got {request.verification_count}"
            ]
        return []

    @staticmethod
    def apply_transition(
        request: TranslationRequest,
        target: RequestStatus,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Validate and apply a status transition.

        Returns errors if the transition is invalid. On success,
        mutates request.status (and the matching timestamp) and
        returns an empty list.
        """
        errors = RequestStateMachine.validate_transition(request, target)
        if errors:
            return errors
        if now is None:
            now = datetime.now(timezone.utc)
        request.transition_to(target)
        if target == RequestStatus.APPROVED:
            request.approved_utc = now
        elif target == RequestStatus.REJECTED:
            request.rejected_utc = now
        return []

    @staticmethod
    def is_terminal(status: RequestStatus) -> bool:
        """Check if a status is terminal (no further transitions)."""
        return status in TERMINAL_STATUSES

    @staticmethod
    def valid_transitions(status: RequestStatus) -> set[RequestStatus]:
        """Return the set of valid target statuses from the given status."""
        return set(REQUEST_TRANSITIONS.get(status, frozenset()))
