"""
Voice Todos — Transcription Client.

Uploads one recording to the remote parse-todo endpoint and turns its JSON
answer into candidate tasks. The remote side does both speech-to-text and
field extraction; it resolves relative dates ("tomorrow at 9") against the
local timestamp we send along with the audio.

One attempt per recording: no retry, no queueing. Every failure is raised
to the caller as an IngestionError subclass.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Literal

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from voice_todos.core.dates import local_zone, now_local
from voice_todos.core.errors import MalformedResponse, RemoteParseError, TransportError

logger = logging.getLogger(__name__)

_PARSE_PATH = "/parse-todo"
_AUDIO_CONTENT_TYPE = "audio/m4a"
_DEFAULT_TIMEOUT_SECONDS = 30.0


# ---------------------------------------------------------------------------
# Response contract
# ---------------------------------------------------------------------------


class CandidateTask(BaseModel):
    """One structured todo extracted from the utterance.

    JSON example:
    {
        "title": "Buy milk",
        "description": "2 liters, oat",
        "due_date": "2025-06-01T09:00:00Z",
        "priority": "medium",
        "category": "personal"
    }
    """
    model_config = ConfigDict(strict=True)

    title: str
    description: str
    due_date: str           # ISO-8601, or a relative string the parser understood
    priority: Literal["low", "medium", "high"]
    category: str           # normalized later by the store

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class TodosResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    todos: list[CandidateTask]


def parse_todos_body(body: bytes | str) -> list[CandidateTask]:
    """Validate a 200 body against the todos contract.

    Raises MalformedResponse on invalid JSON, missing keys or wrong types.
    """
    try:
        return TodosResponse.model_validate_json(body).todos
    except ValidationError as exc:
        raise MalformedResponse(f"Malformed parse-todo response: {exc.error_count()} error(s)") from exc


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TranscriptionClient:
    """Single-shot client for POST {base_url}/parse-todo."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

    @classmethod
    def from_settings(cls) -> TranscriptionClient:
        from voice_todos.config import settings

        tz = local_zone(settings.TIMEZONE)
        return cls(
            settings.PARSE_API_BASE_URL,
            settings.PARSE_API_KEY,
            timeout=settings.PARSE_TIMEOUT_SECONDS,
            clock=lambda: now_local(tz),
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}{_PARSE_PATH}"

    async def parse(self, artifact: str | Path) -> list[CandidateTask]:
        """Upload `artifact` and return the candidate tasks it describes.

        Raises:
            RemoteParseError: any status other than 200.
            MalformedResponse: 200 with a body that breaks the contract.
            TransportError: no response at all.
        """
        path = Path(artifact)
        user_datetime = self._clock().isoformat()

        try:
            # The client is opened and closed per call, success or not.
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                with path.open("rb") as audio_file:
                    resp = await client.post(
                        self.url,
                        files={"audio": (path.name, audio_file, _AUDIO_CONTENT_TYPE)},
                        data={"userDateTime": user_datetime},
                        headers={"Authorization": f"Bearer {self.api_key}"},
                    )
        except httpx.HTTPError as exc:
            logger.error("parse-todo request failed for %s: %s", path.name, exc)
            raise TransportError(f"Could not reach {self.url}: {exc}") from exc

        if resp.status_code != 200:
            logger.error("parse-todo returned HTTP %d for %s", resp.status_code, path.name)
            raise RemoteParseError(resp.status_code)

        candidates = parse_todos_body(resp.content)
        logger.info("Parsed %d candidate task(s) from %s", len(candidates), path.name)
        return candidates
