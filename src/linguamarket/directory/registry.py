"""Participant directory — who may translate, verify, and how much they hold.

The settlement engine consults the directory by account id only:
role and active status, stake, and fire-and-forget counters bumped after
an approval, an approving vote, or a royalty claim. It never owns or
rewrites participant records.

InMemoryParticipantRegistry is a complete reference registry: role
registration, staking, reputation, language-expertise index and
deactivation with stake refund.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

import structlog

from linguamarket.compensation.transfers import ValueTransfer
from linguamarket.models.participant import Participant, ParticipantRole

DEFAULT_REPUTATION = 100
MAX_LANGUAGE_LENGTH = 10


@runtime_checkable
class ParticipantDirectory(Protocol):
    """What the settlement engine needs from a participant registry."""

    def is_registered(self, account: str) -> Tuple[Optional[ParticipantRole], bool]:
        """(role, is_active); role is None for unknown accounts."""
        ...

    def has_stake(self, account: str) -> int:
        ...

    def notify_translated(self, account: str) -> bool:
        ...

    def notify_verified(self, account: str) -> bool:
        ...

    def record_royalty(self, account: str, amount: int) -> bool:
        ...


class InMemoryParticipantRegistry:
    """Dictionary-backed participant registry.

    Usage:
        registry = InMemoryParticipantRegistry(balances, registry_account="registry")
        registry.register("bob", ParticipantRole.TRANSLATOR, ["es", "fr"])
        registry.stake("bob", 5_000_000)
    """

    def __init__(
        self,
        transfers: Optional[ValueTransfer] = None,
        registry_account: str = "registry",
    ) -> None:
        self._transfers = transfers
        self._registry_account = registry_account
        self._participants: Dict[str, Participant] = {}
        self._expertise: Dict[str, set[str]] = {}  # lang → accounts
        self._log = structlog.get_logger(__name__).bind(component="participant_registry")

    # ------------------------------------------------------------------
    # Registration and profile
    # ------------------------------------------------------------------

    def register(
        self,
        account: str,
        role: ParticipantRole,
        expertise_langs: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> Participant:
        """Register an account. Raises ValueError on duplicates or bad input."""
        if account in self._participants:
            raise ValueError(f"Participant already registered: {account}")
        role = ParticipantRole(role)
        langs = list(expertise_langs or [])
        self._check_langs(langs)
        if now is None:
            now = datetime.now(timezone.utc)

        participant = Participant(
            account=account,
            role=role,
            expertise_langs=langs,
            reputation=DEFAULT_REPUTATION,
            joined_utc=now,
        )
        self._participants[account] = participant
        self._index(account, langs)
        self._log.info("participant_registered", account=account, role=role.value)
        return participant

    def stake(self, account: str, amount: int) -> int:
        """Add to an account's stake. Returns the new stake."""
        participant = self._require(account)
        if amount <= 0:
            raise ValueError("Stake amount must be positive")
        if self._transfers is not None:
            self._transfers.transfer(account, self._registry_account, amount)
        participant.stake += amount
        return participant.stake

    def update_reputation(self, account: str, delta: int) -> int:
        """Adjust reputation, floored at zero. Returns the new reputation."""
        participant = self._require(account)
        participant.reputation = max(0, participant.reputation + delta)
        return participant.reputation

    def update_expertise(self, account: str, langs: List[str]) -> None:
        participant = self._require(account)
        self._check_langs(langs)
        self._unindex(account, participant.expertise_langs)
        participant.expertise_langs = list(langs)
        self._index(account, langs)

    def experts_by_language(self, lang: str) -> List[str]:
        return sorted(self._expertise.get(lang, ()))

    def deactivate(self, account: str) -> int:
        """Mark inactive and refund the stake. Returns the refunded amount."""
        participant = self._require(account)
        refund = participant.stake
        if refund and self._transfers is not None:
            self._transfers.transfer(self._registry_account, account, refund)
        participant.stake = 0
        participant.is_active = False
        self._log.info("participant_deactivated", account=account, refunded=refund)
        return refund

    def get(self, account: str) -> Optional[Participant]:
        return self._participants.get(account)

    @property
    def count(self) -> int:
        return len(self._participants)

    # ------------------------------------------------------------------
    # ParticipantDirectory
    # ------------------------------------------------------------------

    def is_registered(self, account: str) -> Tuple[Optional[ParticipantRole], bool]:
        participant = self._participants.get(account)
        if participant is None:
            return None, False
        return participant.role, participant.is_active

    def has_stake(self, account: str) -> int:
        participant = self._participants.get(account)
        return participant.stake if participant else 0

    def notify_translated(self, account: str) -> bool:
        participant = self._participants.get(account)
        if participant is None:
            return False
        participant.total_translated += 1
        return True

    def notify_verified(self, account: str) -> bool:
        participant = self._participants.get(account)
        if participant is None:
            return False
        participant.total_verified += 1
        return True

    def record_royalty(self, account: str, amount: int) -> bool:
        participant = self._participants.get(account)
        if participant is None:
            return False
        participant.total_royalties += amount
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require(self, account: str) -> Participant:
        participant = self._participants.get(account)
        if participant is None:
            raise ValueError(f"Unknown participant: {account}")
        return participant

    @staticmethod
    def _check_langs(langs: List[str]) -> None:
        for lang in langs:
            if not lang or len(lang) > MAX_LANGUAGE_LENGTH:
                raise ValueError(
                    f"Expertise language must be 1-{MAX_LANGUAGE_LENGTH} "
                    f"characters, got {lang!r}"
                )

    def _index(self, account: str, langs: List[str]) -> None:
        for lang in langs:
            self._expertise.setdefault(lang, set()).add(account)

    def _unindex(self, account: str, langs: List[str]) -> None:
        for lang in langs:
            accounts = self._expertise.get(lang)
            if accounts is not None:
                accounts.discard(account)
                if not accounts:
                    del self._expertise[lang]
