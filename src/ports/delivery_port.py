"""Delivery port — abstract interface for sending one message on one channel.

Core modules depend on this protocol, never on a specific telephony provider.
Implementations must not raise for provider or transport failures: they
report them as a failed DeliveryResult so the caller can log and move on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from src.data.models import STATUS_FAILED, STATUS_SENT


@dataclass
class Payload:
    """What to deliver.

    `text` is the literal message (SMS body, or the logged content of a call).
    `voice_script` is a ready-to-run call script (TwiML) for voice calls.
    """

    text: str
    voice_script: str | None = None


@dataclass
class DeliveryResult:
    status: str                       # sent | failed
    provider_ref: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SENT

    @classmethod
    def sent(cls, provider_ref: str | None) -> DeliveryResult:
        return cls(status=STATUS_SENT, provider_ref=provider_ref)

    @classmethod
    def failed(cls, error: str, provider_ref: str | None = None) -> DeliveryResult:
        return cls(status=STATUS_FAILED, provider_ref=provider_ref, error=error)


class DeliveryGateway(Protocol):
    """Abstract delivery interface used by core modules."""

    async def send(self, recipient: str, channel: str, payload: Payload) -> DeliveryResult: ...
