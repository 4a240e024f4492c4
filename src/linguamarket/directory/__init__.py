"""Participant directory interface and in-memory registry."""

from linguamarket.directory.registry import (
    InMemoryParticipantRegistry,
    ParticipantDirectory,
)

__all__ = ["InMemoryParticipantRegistry", "ParticipantDirectory"]
