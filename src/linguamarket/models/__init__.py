"""Core data models for the translation marketplace."""

from linguamarket.models.participant import Participant, ParticipantRole
from linguamarket.models.request import (
    RequestStatus,
    TranslationRequest,
    VerificationVote,
)
from linguamarket.models.royalty import (
    ClaimantCategory,
    RoyaltyDistribution,
    ShareBreakdown,
)

__all__ = [
    "ClaimantCategory",
    "Participant",
    "ParticipantRole",
    "RequestStatus",
    "RoyaltyDistribution",
    "ShareBreakdown",
    "TranslationRequest",
    "VerificationVote",
]
