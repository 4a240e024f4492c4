"""Tests for the append-only settlement event log."""

import json

import pytest
from datetime import datetime, timezone

from linguamarket.persistence.event_log import EventKind, EventLog, EventRecord


def _now() -> datetime:
    return datetime(2026, 3, 2, 9, 30, 0, tzinfo=timezone.utc)


def _event(n: int, kind: EventKind = EventKind.VOTE_CAST) -> EventRecord:
    return EventRecord.create(
        event_id=f"EVT-{n:08d}",
        event_kind=kind,
        actor_id="carol",
        payload={"request_id": 0, "approved": True},
        timestamp_utc=_now(),
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _event(1).event_hash == _event(1).event_hash
        assert _event(1).event_hash.startswith("sha256:")
        assert _event(1).event_hash != _event(2).event_hash

    def test_to_dict(self) -> None:
        data = _event(1).to_dict()
        assert data["event_kind"] == "vote_cast"
        assert data["timestamp_utc"] == "2026-03-02T09:30:00Z"

    def test_from_dict_restores_record(self) -> None:
        event = _event(1, EventKind.SHARE_CLAIMED)
        assert EventRecord.from_dict(event.to_dict()) == event

    def test_from_dict_rejects_altered_payload(self) -> None:
        data = _event(1).to_dict()
        data["payload"] = {"request_id": 0, "approved": False}
        with pytest.raises(ValueError, match="Integrity check failed: event EVT-00000001"):
            EventRecord.from_dict(data)

    def test_from_dict_rejects_unknown_kind(self) -> None:
        data = _event(1).to_dict()
        data["event_kind"] = "mission_created"
        with pytest.raises(ValueError):
            EventRecord.from_dict(data)


class TestEventLog:
    def test_append_and_filter(self) -> None:
        log = EventLog()
        log.append(_event(1))
        log.append(_event(2, EventKind.BOUNTY_RELEASED))
        assert log.count == 2
        assert [e.event_id for e in log.events(EventKind.BOUNTY_RELEASED)] == ["EVT-00000002"]
        assert log.counts_by_kind() == {"vote_cast": 1, "bounty_released": 1}

    def test_duplicate_rejected(self) -> None:
        log = EventLog()
        log.append(_event(1))
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(_event(1))
        assert log.count == 1

    def test_empty_log(self) -> None:
        log = EventLog()
        assert log.events() == []
        assert log.count == 0

    def test_persist_and_reload(self, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append(_event(1))
        log.append(_event(2))

        reloaded = EventLog(storage_path=path)
        assert reloaded.count == 2
        assert reloaded.events()[0].event_hash == _event(1).event_hash

    def test_tampered_record_detected(self, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event(1))
        record = json.loads(path.read_text(encoding="utf-8"))
        record["payload"]["approved"] = False
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Integrity check failed"):
            EventLog(storage_path=path)

    def test_replayed_record_detected(self, tmp_path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event(1))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate event ID on recovery"):
            EventLog(storage_path=path)
