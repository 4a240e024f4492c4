"""Error kinds shared by every settlement component.

Components raise SettlementError (or a subclass) on a failed
precondition. The SettlementEngine catches these at the operation
boundary and converts them into a SettlementResult, so callers only
ever see an error code.
"""

from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    """Typed failure reason carried by every unsuccessful operation."""
    NOT_AUTHORIZED = "not_authorized"
    REQUEST_NOT_FOUND = "request_not_found"
    REQUEST_CLOSED = "request_closed"
    INSUFFICIENT_BOUNTY = "insufficient_bounty"
    INSUFFICIENT_ROYALTY = "insufficient_royalty"
    VERIFICATION_FAILED = "verification_failed"
    ALREADY_SUBMITTED = "already_submitted"
    INVALID_HASH = "invalid_hash"
    INVALID_LANGUAGE = "invalid_language"
    INVALID_THRESHOLD = "invalid_threshold"
    INVALID_STATUS = "invalid_status"
    NO_TRANSLATION = "no_translation"
    ALREADY_DISTRIBUTED = "already_distributed"
    DISTRIBUTION_LOCKED = "distribution_locked"
    INVALID_FEE_RATE = "invalid_fee_rate"


class SettlementError(Exception):
    """A rejected precondition inside the settlement engine."""

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        super().__init__(message or code.value)
        self.code = code
        self.message = message or code.value


class TransitionError(SettlementError):
    """Raised when a request status transition is not allowed."""


class InsufficientBalanceError(Exception):
    """Raised by a value transfer when the source account cannot cover it."""

    def __init__(self, account: str, balance: int, amount: int) -> None:
        super().__init__(
            f"Insufficient balance in {account}: has {balance}, needs {amount}"
        )
        self.account = account
        self.balance = balance
        self.amount = amount
