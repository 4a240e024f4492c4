"""Tests for the verification tracker — one vote per verifier per request."""

import pytest

from linguamarket.engine.verification import VerificationTracker
from linguamarket.errors import ErrorCode, SettlementError
from linguamarket.models.request import RequestStatus, TranslationRequest


def _verifying(threshold: int = 2) -> TranslationRequest:
    return TranslationRequest(
        request_id=4,
        creator="alice",
        content_hash="a" * 64,
        source_lang="en",
        target_lang="es",
        bounty=1_000,
        approval_threshold=threshold,
        status=RequestStatus.VERIFYING,
        translator="bob",
        translation_hash="b" * 64,
    )


class TestCastVote:
    def test_approving_vote_counts(self) -> None:
        tracker = VerificationTracker()
        request = _verifying()
        vote = tracker.cast_vote(request, "carol", approved=True)
        assert vote.approved
        assert request.verification_count == 1
        assert tracker.approving_verifiers(4) == ("carol",)
        assert tracker.has_approved(4, "carol")

    def test_rejecting_vote_recorded_not_counted(self) -> None:
        tracker = VerificationTracker()
        request = _verifying()
        tracker.cast_vote(request, "carol", approved=False)
        assert request.verification_count == 0
        assert tracker.get_vote(4, "carol") is not None
        assert tracker.approval_count(4) == 0
        assert not tracker.has_approved(4, "carol")

    def test_approvers_in_vote_order(self) -> None:
        tracker = VerificationTracker()
        request = _verifying(threshold=3)
        for v in ("dave", "carol", "erin"):
            tracker.cast_vote(request, v, approved=True)
        assert tracker.approving_verifiers(4) == ("dave", "carol", "erin")
        assert VerificationTracker.threshold_reached(request)

    def test_votes_for_request(self) -> None:
        tracker = VerificationTracker()
        request = _verifying()
        tracker.cast_vote(request, "carol", approved=True)
        tracker.cast_vote(request, "dave", approved=False)
        assert {v.verifier for v in tracker.votes_for(4)} == {"carol", "dave"}
        assert tracker.votes_for(99) == []


class TestVoteChecks:
    def test_not_verifying(self) -> None:
        tracker = VerificationTracker()
        request = _verifying()
        request.status = RequestStatus.SUBMITTED
        with pytest.raises(SettlementError) as exc:
            tracker.cast_vote(request, "carol", approved=True)
        assert exc.value.code == ErrorCode.INVALID_STATUS

    def test_self_verification(self) -> None:
        tracker = VerificationTracker()
        with pytest.raises(SettlementError) as exc:
            tracker.check_vote(_verifying(), "bob")
        assert exc.value.code == ErrorCode.VERIFICATION_FAILED

    def test_duplicate(self) -> None:
        tracker = VerificationTracker()
        request = _verifying()
        tracker.cast_vote(request, "carol", approved=True)
        with pytest.raises(SettlementError) as exc:
            tracker.cast_vote(request, "carol", approved=True)
        assert exc.value.code == ErrorCode.ALREADY_SUBMITTED
        assert request.verification_count == 1


class TestRetract:
    def test_retract_restores_count(self) -> None:
        tracker = VerificationTracker()
        request = _verifying()
        tracker.cast_vote(request, "carol", approved=True)
        tracker.retract_vote(request, "carol")
        assert request.verification_count == 0
        assert tracker.get_vote(4, "carol") is None
        assert tracker.approving_verifiers(4) == ()

    def test_votes_final_after_approval(self) -> None:
        tracker = VerificationTracker()
        request = _verifying(threshold=1)
        tracker.cast_vote(request, "carol", approved=True)
        request.status = RequestStatus.APPROVED
        with pytest.raises(SettlementError):
            tracker.retract_vote(request, "carol")
        assert tracker.approving_verifiers(4) == ("carol",)
