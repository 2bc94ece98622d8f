"""
CareCall — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_ATTEMPT_POLICIES = ("occurrence", "failure")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Twilio: SMS and voice calls
    TWILIO_ACCOUNT_SID: str
    TWILIO_AUTH_TOKEN: str
    TWILIO_PHONE_NUMBER: str
    CALL_VOICE: str = "Polly.Joanna"

    # ElevenLabs voice cloning (disabled when key or public URL is empty)
    ELEVENLABS_API_KEY: str = ""
    ELEVENLABS_MODEL_ID: str = "eleven_monolingual_v1"
    AUDIO_STORAGE_DIR: str = "data/audio"
    AUDIO_PUBLIC_BASE_URL: str = ""

    # Keypress capture callback (Gather action)
    RESPONSE_CALLBACK_URL: str = ""

    # SQLite
    DATABASE_PATH: str = "data/carecall.db"

    # Clock
    TIMEZONE: str = "Europe/London"

    # External calls
    HTTP_TIMEOUT_SECONDS: float = 10.0
    ESCALATION_SEND_DELAY_SECONDS: float = 1.0

    # "occurrence" counts every unsatisfied due occurrence,
    # "failure" counts only occurrences where every channel failed
    ATTEMPT_POLICY: str = "occurrence"

    SENDER_SIGNATURE: str = "CareCall"

    @field_validator("HTTP_TIMEOUT_SECONDS", "ESCALATION_SEND_DELAY_SECONDS", mode="before")
    @classmethod
    def parse_seconds(cls, v: str | float) -> float:
        return float(v)

    @field_validator("ATTEMPT_POLICY", mode="before")
    @classmethod
    def parse_policy(cls, v: str) -> str:
        policy = (v or "occurrence").strip().lower()
        if policy not in _ATTEMPT_POLICIES:
            raise ValueError(f"ATTEMPT_POLICY must be one of {_ATTEMPT_POLICIES}, got {v!r}")
        return policy

    @property
    def voice_cloning_enabled(self) -> bool:
        return bool(self.ELEVENLABS_API_KEY and self.AUDIO_PUBLIC_BASE_URL)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    required = {
        key: os.getenv(key, "")
        for key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER")
    }
    for key, value in required.items():
        if not value or value.startswith("your-"):
            print(f"ERROR: {key} is missing or not set in .env", file=sys.stderr)
            sys.exit(1)

    return Settings(
        **required,
        CALL_VOICE=os.getenv("CALL_VOICE", "Polly.Joanna"),
        ELEVENLABS_API_KEY=os.getenv("ELEVENLABS_API_KEY", ""),
        ELEVENLABS_MODEL_ID=os.getenv("ELEVENLABS_MODEL_ID", "eleven_monolingual_v1"),
        AUDIO_STORAGE_DIR=os.getenv("AUDIO_STORAGE_DIR", "data/audio"),
        AUDIO_PUBLIC_BASE_URL=os.getenv("AUDIO_PUBLIC_BASE_URL", ""),
        RESPONSE_CALLBACK_URL=os.getenv("RESPONSE_CALLBACK_URL", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/carecall.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Europe/London"),
        HTTP_TIMEOUT_SECONDS=os.getenv("HTTP_TIMEOUT_SECONDS", "10"),
        ESCALATION_SEND_DELAY_SECONDS=os.getenv("ESCALATION_SEND_DELAY_SECONDS", "1.0"),
        ATTEMPT_POLICY=os.getenv("ATTEMPT_POLICY", "occurrence"),
        SENDER_SIGNATURE=os.getenv("SENDER_SIGNATURE", "CareCall"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
