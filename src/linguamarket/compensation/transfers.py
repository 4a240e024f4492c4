"""Value transfer primitive — the atomic balance move the engine relies on.

The settlement logic never touches balances directly. Escrow funding,
bounty release, refunds, royalty payouts and platform fee sweeps all go
through a ValueTransfer. A transfer either moves the full amount or
raises InsufficientBalanceError; it never moves part of it.

InMemoryBalances is the reference implementation used by the CLI and the
test suite. Custody of real balances is a separate backend behind the
same Protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Protocol, runtime_checkable

import structlog

from linguamarket.errors import InsufficientBalanceError


@runtime_checkable
class ValueTransfer(Protocol):
    """Contract for an atomic account-to-account transfer."""

    def transfer(self, source: str, destination: str, amount: int) -> None:
        """Move amount from source to destination, or raise."""
        ...

    def balance_of(self, account: str) -> int:
        """Current balance of an account (0 if unknown)."""
        ...


@dataclass(frozen=True)
class TransferRecord:
    """One completed transfer. Appended, never modified."""
    source: str
    destination: str
    amount: int


class InMemoryBalances:
    """Dictionary-backed balances with a complete transfer trail.

    Usage:
        balances = InMemoryBalances()
        balances.deposit("alice", 1_000_000)
        balances.transfer("alice", "engine", 250_000)
    """

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}
        self._transfers: List[TransferRecord] = []
        self._log = structlog.get_logger(__name__).bind(component="balances")

    def deposit(self, account: str, amount: int) -> int:
        """Credit an account from outside the system. Returns the new balance."""
        if amount <= 0:
            raise ValueError("Deposit amount must be positive")
        self._balances[account] = self._balances.get(account, 0) + amount
        return self._balances[account]

    def transfer(self, source: str, destination: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Transfer amount must be positive")
        balance = self._balances.get(source, 0)
        if balance < amount:
            self._log.info(
                "transfer_rejected", source=source, destination=destination,
                amount=amount, balance=balance,
            )
            raise InsufficientBalanceError(source, balance, amount)
        self._balances[source] = balance - amount
        self._balances[destination] = self._balances.get(destination, 0) + amount
        self._transfers.append(TransferRecord(source, destination, amount))

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def transfers(self) -> List[TransferRecord]:
        return list(self._transfers)

    def balances(self) -> Dict[str, int]:
        return dict(self._balances)
