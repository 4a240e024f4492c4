"""Participant models — registry records consulted by the settlement engine.

The engine never owns these records. It looks participants up by
account id and bumps their counters through the directory interface.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class ParticipantRole(str, enum.Enum):
    """What a participant registered to do."""
    CREATOR = "creator"
    TRANSLATOR = "translator"
    VERIFIER = "verifier"
    ALL = "all"

    def can_translate(self) -> bool:
        return self in (ParticipantRole.TRANSLATOR, ParticipantRole.ALL)

    def can_verify(self) -> bool:
        return self in (ParticipantRole.VERIFIER, ParticipantRole.ALL)


@dataclass
class Participant:
    """A registered marketplace participant."""
    account: str
    role: ParticipantRole
    expertise_langs: List[str] = field(default_factory=list)
    reputation: int = 100
    total_translated: int = 0
    total_verified: int = 0
    total_royalties: int = 0
    stake: int = 0
    is_active: bool = True
    joined_utc: Optional[datetime] = None
