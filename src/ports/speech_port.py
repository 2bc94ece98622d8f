"""Speech port — abstract interface for voice-clone synthesis.

Returns a reference to a playable audio asset (a public URL).
"""

from __future__ import annotations

from typing import Protocol


class SpeechError(Exception):
    """Raised when a voice-clone synthesis or its upload fails."""


class SpeechSynthesizer(Protocol):
    """Abstract voice-clone interface used by the speech composer."""

    async def synthesize(self, text: str, voice_profile_ref: str, asset_name: str) -> str: ...
