"""Tests for the request state machine — lifecycle transitions."""

import pytest
from datetime import datetime, timezone

from linguamarket.engine.state_machine import RequestStateMachine
from linguamarket.errors import ErrorCode, SettlementError, TransitionError
from linguamarket.models.request import RequestStatus, TranslationRequest


def _now() -> datetime:
    return datetime(2026, 3, 2, 9, 30, 0, tzinfo=timezone.utc)


def _make_request(
    status: RequestStatus = RequestStatus.OPEN,
    translator: str | None = None,
    translation_hash: str | None = None,
    verification_count: int = 0,
    approval_threshold: int = 2,
) -> TranslationRequest:
    return TranslationRequest(
        request_id=0,
        creator="alice",
        content_hash="a" * 64,
        source_lang="en",
        target_lang="es",
        bounty=1_000_000,
        approval_threshold=approval_threshold,
        status=status,
        translator=translator,
        translation_hash=translation_hash,
        verification_count=verification_count,
    )


class TestValidTransitions:
    def test_open_to_submitted(self) -> None:
        request = _make_request(translator="bob", translation_hash="b" * 64)
        assert RequestStateMachine.validate_transition(request, RequestStatus.SUBMITTED) == []

    def test_submitted_to_verifying(self) -> None:
        request = _make_request(RequestStatus.SUBMITTED, "bob", "b" * 64)
        assert RequestStateMachine.validate_transition(request, RequestStatus.VERIFYING) == []

    def test_verifying_to_approved_at_threshold(self) -> None:
        request = _make_request(RequestStatus.VERIFYING, "bob", "b" * 64, verification_count=2)
        assert RequestStateMachine.validate_transition(request, RequestStatus.APPROVED) == []

    def test_any_non_terminal_to_rejected(self) -> None:
        """All non-terminal statuses can transition to REJECTED."""
        for status in (RequestStatus.OPEN, RequestStatus.SUBMITTED, RequestStatus.VERIFYING):
            request = _make_request(status)
            errors = RequestStateMachine.validate_transition(request, RequestStatus.REJECTED)
            assert errors == [], f"{status.value} → REJECTED should be valid"


class TestInvalidTransitions:
    def test_open_to_verifying(self) -> None:
        request = _make_request()
        errors = RequestStateMachine.validate_transition(request, RequestStatus.VERIFYING)
        assert len(errors) == 1
        assert "Invalid request transition" in errors[0]

    def test_open_to_approved(self) -> None:
        request = _make_request()
        assert len(RequestStateMachine.validate_transition(request, RequestStatus.APPROVED)) == 1

    def test_submitted_without_translator(self) -> None:
        request = _make_request()
        errors = RequestStateMachine.validate_transition(request, RequestStatus.SUBMITTED)
        assert "no translator" in errors[0]

    def test_approval_below_threshold(self) -> None:
        request = _make_request(RequestStatus.VERIFYING, "bob", "b" * 64, verification_count=1)
        errors = RequestStateMachine.validate_transition(request, RequestStatus.APPROVED)
        assert "needs 2 approvals" in errors[0]

    def test_terminal_statuses_have_no_exits(self) -> None:
        for terminal in (RequestStatus.APPROVED, RequestStatus.REJECTED):
            request = _make_request(terminal)
            for target in RequestStatus:
                errors = RequestStateMachine.validate_transition(request, target)
                assert len(errors) == 1, f"{terminal.value} → {target.value} should be invalid"


class TestApplyTransition:
    def test_apply_mutates_status(self) -> None:
        request = _make_request(translator="bob", translation_hash="b" * 64)
        errors = RequestStateMachine.apply_transition(request, RequestStatus.SUBMITTED)
        assert errors == []
        assert request.status == RequestStatus.SUBMITTED

    def test_apply_invalid_leaves_status(self) -> None:
        request = _make_request()
        errors = RequestStateMachine.apply_transition(request, RequestStatus.APPROVED)
        assert errors
        assert request.status == RequestStatus.OPEN

    def test_approval_and_rejection_timestamps(self) -> None:
        approved = _make_request(RequestStatus.VERIFYING, "bob", "b" * 64, verification_count=2)
        RequestStateMachine.apply_transition(approved, RequestStatus.APPROVED, _now())
        assert approved.approved_utc == _now()
        assert approved.rejected_utc is None

        rejected = _make_request()
        RequestStateMachine.apply_transition(rejected, RequestStatus.REJECTED, _now())
        assert rejected.rejected_utc == _now()


class TestHelpers:
    def test_is_terminal(self) -> None:
        assert RequestStateMachine.is_terminal(RequestStatus.APPROVED)
        assert RequestStateMachine.is_terminal(RequestStatus.REJECTED)
        assert not RequestStateMachine.is_terminal(RequestStatus.VERIFYING)

    def test_valid_transitions(self) -> None:
        assert RequestStateMachine.valid_transitions(RequestStatus.OPEN) == {
            RequestStatus.SUBMITTED, RequestStatus.REJECTED,
        }
        assert RequestStateMachine.valid_transitions(RequestStatus.APPROVED) == set()


class TestRequestModel:
    def test_transition_from_terminal_is_request_closed(self) -> None:
        request = _make_request(RequestStatus.REJECTED)
        with pytest.raises(TransitionError) as exc:
            request.transition_to(RequestStatus.OPEN)
        assert exc.value.code == ErrorCode.REQUEST_CLOSED

    def test_illegal_transition_is_invalid_status(self) -> None:
        request = _make_request()
        with pytest.raises(TransitionError) as exc:
            request.transition_to(RequestStatus.APPROVED)
        assert exc.value.code == ErrorCode.INVALID_STATUS

    def test_translation_is_write_once(self) -> None:
        request = _make_request()
        request.assign_translation("bob", "b" * 64)
        with pytest.raises(SettlementError) as exc:
            request.assign_translation("mallory", "c" * 64)
        assert exc.value.code == ErrorCode.ALREADY_SUBMITTED
        assert request.translator == "bob"

    def test_approvals_only_while_verifying(self) -> None:
        request = _make_request(RequestStatus.SUBMITTED)
        with pytest.raises(TransitionError):
            request.record_approval()
        request.status = RequestStatus.VERIFYING
        assert request.record_approval() == 1

    def test_to_dict(self) -> None:
        data = _make_request().to_dict()
        assert data["status"] == "open"
        assert data["bounty"] == 1_000_000
        assert data["translator"] is None
