"""Account ledger collaborator.

The ledger owns two facts about an identity that issuance depends on but
does not manage: its balance (fees are debited from it) and its
transaction sequence number (mint proofs are bound to it).  Transfers are
all-or-nothing: either both balances change or InsufficientFunds is
raised and neither does.
"""

from __future__ import annotations

from typing import Protocol

from kyc_issuer.core.errors import InsufficientFunds


class LedgerRepo(Protocol):
    async def sequence_number(self, identity: str) -> int: ...
    async def advance_sequence(self, identity: str) -> int: ...
    async def balance(self, identity: str) -> int: ...
    async def transfer(self, sender: str, recipient: str, amount: int) -> None: ...


class InMemoryLedgerRepo:
    """Per-process ledger for tests and local dev.

    Unknown identities have balance 0 and sequence number 0.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._sequence: dict[str, int] = {}

    async def sequence_number(self, identity: str) -> int:
        return self._sequence.get(identity, 0)

    async def advance_sequence(self, identity: str) -> int:
        seq = self._sequence.get(identity, 0) + 1
        self._sequence[identity] = seq
        return seq

    async def balance(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    async def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("transfer amount must be non-negative")
        available = self._balances.get(sender, 0)
        if available < amount:
            raise InsufficientFunds(
                f"{sender} holds {available}, fee requires {amount}"
            )
        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

    def deposit(self, identity: str, amount: int) -> None:
        """Fund an account.  Setup helper; not part of the LedgerRepo protocol."""
        self._balances[identity] = self._balances.get(identity, 0) + amount

    def snapshot(self) -> tuple[dict[str, int], dict[str, int]]:
        return dict(self._balances), dict(self._sequence)

    def restore(self, snapshot: tuple[dict[str, int], dict[str, int]]) -> None:
        balances, sequence = snapshot
        self._balances = dict(balances)
        self._sequence = dict(sequence)
