"""Speech composer — turns reminder text into a voice-call script.

Produces TwiML: a <Play> of a cloned-voice asset when cloning is requested
and succeeds, otherwise a <Say> with the standard synthesized voice,
optionally followed by a one-digit <Gather> for response capture.
Clone failures never abort the call: they degrade to <Say>.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from xml.sax.saxutils import escape, quoteattr

from src.data.models import ReminderTask
from src.ports.speech_port import SpeechSynthesizer

logger = logging.getLogger(__name__)

_ENTITIES = {'"': "&quot;", "'": "&apos;"}
_GATHER_PROMPT = "If you're doing well, press 1. If you need assistance, press 2."
_GATHER_CLOSING = "Thank you. Take care."


@dataclass
class VoiceScript:
    twiml: str
    used_clone: bool = False
    fallback_reason: str | None = None


def escape_xml(text: str) -> str:
    return escape(text, _ENTITIES)


def say_script(text: str, voice: str) -> str:
    return f"<Response><Say voice={quoteattr(voice)}>{escape_xml(text)}</Say></Response>"


def play_script(audio_url: str) -> str:
    return f"<Response><Play>{escape_xml(audio_url)}</Play></Response>"


def capture_script(text: str, voice: str, action_url: str) -> str:
    """Say the reminder, then collect one keypress posted to `action_url`."""
    v = quoteattr(voice)
    return (
        "<Response>"
        f"<Say voice={v}>{escape_xml(text)}</Say>"
        f'<Gather numDigits="1" timeout="5" action={quoteattr(action_url)}>'
        f"<Say voice={v}>{escape_xml(_GATHER_PROMPT)}</Say>"
        "</Gather>"
        f"<Say voice={v}>{escape_xml(_GATHER_CLOSING)}</Say>"
        "</Response>"
    )


async def compose_call_script(
    task: ReminderTask,
    text: str,
    asset_name: str,
    voice: str,
    synthesizer: SpeechSynthesizer | None = None,
    callback_url: str = "",
) -> VoiceScript:
    """Build the call script for a reminder.

    Args:
        task: The reminder task (clone and capture flags are read from it).
        text: The composed reminder text.
        asset_name: Unique name for a rendered audio asset.
        voice: Standard TTS voice for <Say>.
        synthesizer: Voice-clone provider, or None when cloning is unavailable.
        callback_url: Gather action URL; capture is skipped when empty.
    """
    fallback_reason = None

    if task.use_cloned_voice:
        if synthesizer is None or not task.voice_profile_ref:
            fallback_reason = "voice cloning unavailable"
        else:
            try:
                audio_url = await synthesizer.synthesize(text, task.voice_profile_ref, asset_name)
                return VoiceScript(twiml=play_script(audio_url), used_clone=True)
            except Exception as exc:
                fallback_reason = str(exc) or exc.__class__.__name__
        logger.warning(
            "Task #%d: cloned voice fell back to standard speech (%s)",
            task.id, fallback_reason,
        )

    if task.enable_response_capture and callback_url:
        twiml = capture_script(text, voice, callback_url)
    else:
        twiml = say_script(text, voice)
    return VoiceScript(twiml=twiml, fallback_reason=fallback_reason)


def reply_script(text: str, voice: str) -> str:
    """Short spoken reply that ends the call."""
    return f"<Response><Say voice={quoteattr(voice)}>{escape_xml(text)}</Say><Hangup/></Response>"
