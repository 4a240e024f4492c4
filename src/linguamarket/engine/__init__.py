"""Request lifecycle — state machine, request ledger, verification tracker."""

from linguamarket.engine.requests import RequestLedger
from linguamarket.engine.state_machine import RequestStateMachine
from linguamarket.engine.verification import VerificationTracker

__all__ = ["RequestLedger", "RequestStateMachine", "VerificationTracker"]
