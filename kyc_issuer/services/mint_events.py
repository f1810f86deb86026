"""Mint event sinks.

The orchestrator reports each committed mint (receiver, credential key)
to a sink after the unit of work has committed.  Sinks are telemetry:
a failing sink is logged and never undoes a mint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MintEvent:
    receiver: str
    credential_key: str


@runtime_checkable
class MintEventSink(Protocol):
    async def record_mint(self, receiver: str, credential_key: str) -> None: ...


class LoggingMintEventSink:
    """Writes one structured log line per mint (picked up by the JSON formatter)."""

    async def record_mint(self, receiver: str, credential_key: str) -> None:
        logger.info(
            "mint_event receiver=%s credential_key=%s",
            receiver,
            credential_key,
            extra={"receiver": receiver, "credential_key": credential_key},
        )


class InMemoryMintEventSink:
    def __init__(self) -> None:
        self.events: list[MintEvent] = []

    async def record_mint(self, receiver: str, credential_key: str) -> None:
        self.events.append(MintEvent(receiver=receiver, credential_key=credential_key))
