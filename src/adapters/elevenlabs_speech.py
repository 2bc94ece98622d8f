"""ElevenLabs voice-clone adapter — implements SpeechSynthesizer.

Renders text in a cloned voice, writes the MP3 under the audio storage
directory and returns its public URL for the call script to play.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from src.ports.speech_port import SpeechError

logger = logging.getLogger(__name__)

_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"


class ElevenLabsSpeech:
    """ElevenLabs implementation of SpeechSynthesizer."""

    def __init__(
        self,
        api_key: str,
        storage_dir: str,
        public_base_url: str,
        model_id: str = "eleven_monolingual_v1",
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._storage_dir = Path(storage_dir)
        self._public_base_url = public_base_url.rstrip("/")
        self._model_id = model_id
        self._timeout = timeout

    @classmethod
    def from_settings(cls) -> ElevenLabsSpeech:
        from src.config import settings

        return cls(
            api_key=settings.ELEVENLABS_API_KEY,
            storage_dir=settings.AUDIO_STORAGE_DIR,
            public_base_url=settings.AUDIO_PUBLIC_BASE_URL,
            model_id=settings.ELEVENLABS_MODEL_ID,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def synthesize(self, text: str, voice_profile_ref: str, asset_name: str) -> str:
        """Render `text` with the cloned voice and return the asset URL.

        Raises SpeechError on any provider, timeout or storage failure.
        """
        if not self._api_key or not self._public_base_url:
            raise SpeechError("voice cloning is not configured")
        if not voice_profile_ref:
            raise SpeechError("no voice profile")

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    _TTS_URL.format(voice_id=voice_profile_ref),
                    json={"text": text, "model_id": self._model_id},
                    headers={"xi-api-key": self._api_key},
                )
                resp.raise_for_status()
                audio = resp.content
        except httpx.HTTPError as exc:
            raise SpeechError(f"ElevenLabs synthesis failed: {exc}") from exc

        if not audio:
            raise SpeechError("ElevenLabs returned empty audio")

        relative = f"voice-reminders/{asset_name}.mp3"
        target = self._storage_dir / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(audio)
        except OSError as exc:
            raise SpeechError(f"could not store audio: {exc}") from exc

        url = f"{self._public_base_url}/{relative}"
        logger.info("Cloned-voice audio stored at %s", url)
        return url
