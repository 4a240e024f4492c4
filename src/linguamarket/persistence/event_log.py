"""Append-only settlement event log — the audit trail of every payout.

Each successful mutating operation of the settlement engine appends one
event. Events are immutable once written and carry a SHA-256 hash of
their canonical JSON form, so a persisted log can be re-verified record
by record on load.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class EventKind(str, enum.Enum):
    """Classification of settlement events."""
    REQUEST_CREATED = "request_created"
    TRANSLATION_SUBMITTED = "translation_submitted"
    VERIFICATION_STARTED = "verification_started"
    VOTE_CAST = "vote_cast"
    BOUNTY_RELEASED = "bounty_released"
    REQUEST_REJECTED = "request_rejected"
    DISTRIBUTION_INITIATED = "distribution_initiated"
    SHARE_CLAIMED = "share_claimed"
    PLATFORM_FEE_SWEPT = "platform_fee_swept"
    FEE_RATE_CHANGED = "fee_rate_changed"
    PLATFORM_WALLET_CHANGED = "platform_wallet_changed"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable settlement event."""
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> EventRecord:
        """Rebuild a persisted record, refusing one whose hash does not match.

        Raises:
            ValueError: unknown event kind or hash mismatch.
            KeyError: a required field is missing.
        """
        record = EventRecord(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            event_hash=data["event_hash"],
        )
        expected = _canonical_hash(
            record.event_id, record.event_kind.value,
            record.timestamp_utc, record.actor_id, record.payload,
        )
        if record.event_hash != expected:
            raise ValueError(
                f"Integrity check failed: event {record.event_id} "
                f"stored hash {record.event_hash} != computed {expected}"
            )
        return record


class EventLog:
    """Append-only event log with optional JSONL file persistence.

    Events can only be appended, never modified or deleted. When a
    storage path is given, every append is written through and an
    existing file is loaded (and integrity-checked) on construction.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._event_ids: set[str] = set()
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event. Raises ValueError on a duplicate event_id."""
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")

        if self._storage_path:
            with self._storage_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

        self._events.append(event)
        self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def counts_by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for e in self._events:
            counts[e.event_kind.value] = counts.get(e.event_kind.value, 0) + 1
        return counts

    @property
    def count(self) -> int:
        return len(self._events)

    def _load_from_file(self, path: Path) -> None:
        """Load events from JSONL, rejecting tampered or replayed records."""
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    event = EventRecord.from_dict(json.loads(line))
                except ValueError as e:
                    raise ValueError(f"{path} line {line_num}: {e}") from e
                if event.event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event.event_id}"
                    )
                self._events.append(event)
                self._event_ids.add(event.event_id)
