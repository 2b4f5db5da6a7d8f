"""
Voice Todos — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from voice_todos/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (front end + reminder delivery)
    TELEGRAM_BOT_TOKEN: str

    # Remote transcription / parsing endpoint
    PARSE_API_BASE_URL: str = "https://api.abarrett.io"
    PARSE_API_KEY: str
    PARSE_TIMEOUT_SECONDS: float = 30.0

    # SQLite
    DATABASE_PATH: str = "data/todos.db"

    # Audio capture
    RECORDINGS_DIR: str = ""     # empty → system temp dir
    SAMPLE_RATE: int = 16000
    FFMPEG_PATH: str = "ffmpeg"

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # Display / due-date normalization (empty → system local zone)
    TIMEZONE: str = ""

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("PARSE_API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    api_key = os.getenv("PARSE_API_KEY", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if not api_key or api_key.startswith("your-"):
        print("ERROR: PARSE_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        PARSE_API_BASE_URL=os.getenv("PARSE_API_BASE_URL", "https://api.abarrett.io"),
        PARSE_API_KEY=api_key,
        PARSE_TIMEOUT_SECONDS=os.getenv("PARSE_TIMEOUT_SECONDS", "30"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/todos.db"),
        RECORDINGS_DIR=os.getenv("RECORDINGS_DIR", ""),
        SAMPLE_RATE=os.getenv("SAMPLE_RATE", "16000"),
        FFMPEG_PATH=os.getenv("FFMPEG_PATH", "ffmpeg"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        TIMEZONE=os.getenv("TIMEZONE", ""),
    )


# Singleton — imported by all other modules as:
#   from voice_todos.config import settings
settings = _load_settings()
