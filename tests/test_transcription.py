"""Tests for voice_todos.core.transcription — parse-todo client.

HTTP is faked with httpx.MockTransport, or by patching httpx.AsyncClient
where the test is about the client's lifecycle.
"""

import json
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from voice_todos.core.errors import MalformedResponse, RemoteParseError, TransportError
from voice_todos.core.transcription import CandidateTask, TranscriptionClient, parse_todos_body

FIXED = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)

GOOD_BODY = {
    "todos": [
        {
            "title": "Buy milk",
            "description": "",
            "due_date": "2025-06-01T09:00:00Z",
            "priority": "medium",
            "category": "personal",
        }
    ]
}


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / "recording_1714564800000.m4a"
    path.write_bytes(b"\x00\x00\x00\x18ftypM4A fake")
    return path


def _client(handler, base_url="https://parse.test"):
    return TranscriptionClient(
        base_url,
        "secret-key",
        transport=httpx.MockTransport(handler),
        clock=lambda: FIXED,
    )


class TestParseTodosBody:
    def test_valid(self):
        todos = parse_todos_body(json.dumps(GOOD_BODY))
        assert todos == [
            CandidateTask(
                title="Buy milk",
                description="",
                due_date="2025-06-01T09:00:00Z",
                priority="medium",
                category="personal",
            )
        ]

    def test_empty_list(self):
        assert parse_todos_body('{"todos": []}') == []

    def test_title_is_trimmed(self):
        body = {"todos": [dict(GOOD_BODY["todos"][0], title="  Buy milk ")]}
        assert parse_todos_body(json.dumps(body))[0].title == "Buy milk"

    @pytest.mark.parametrize("body", [
        "not json",
        "{}",
        '{"todos": {}}',
        '{"todos": [{"title": "x"}]}',
    ])
    def test_malformed(self, body):
        with pytest.raises(MalformedResponse):
            parse_todos_body(body)

    @pytest.mark.parametrize("field, value", [
        ("priority", "urgent"),
        ("title", "   "),
        ("title", 42),
        ("due_date", None),
        ("category", ["work"]),
    ])
    def test_bad_field(self, field, value):
        body = {"todos": [dict(GOOD_BODY["todos"][0], **{field: value})]}
        with pytest.raises(MalformedResponse):
            parse_todos_body(json.dumps(body))


class TestTranscriptionClient:
    def test_url_strips_trailing_slash(self):
        client = TranscriptionClient("https://parse.test/", "k")
        assert client.url == "https://parse.test/parse-todo"

    @pytest.mark.asyncio
    async def test_success(self, artifact):
        client = _client(lambda request: httpx.Response(200, json=GOOD_BODY))
        todos = await client.parse(artifact)
        assert [t.title for t in todos] == ["Buy milk"]
        assert todos[0].priority == "medium"

    @pytest.mark.asyncio
    async def test_request_shape(self, artifact):
        captured = {}

        def handler(request: httpx.Request):
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["content_type"] = request.headers["Content-Type"]
            captured["body"] = request.read()
            return httpx.Response(200, json={"todos": []})

        await _client(handler).parse(artifact)

        assert captured["method"] == "POST"
        assert captured["url"] == "https://parse.test/parse-todo"
        assert captured["auth"] == "Bearer secret-key"
        assert captured["content_type"].startswith("multipart/form-data")
        body = captured["body"]
        assert b'name="audio"; filename="recording_1714564800000.m4a"' in body
        assert b"Content-Type: audio/m4a" in body
        assert b"ftypM4A fake" in body
        assert b'name="userDateTime"' in body
        assert FIXED.isoformat().encode() in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [201, 400, 401, 500, 503])
    async def test_non_200_raises_remote_parse_error(self, artifact, status):
        client = _client(lambda request: httpx.Response(status, json=GOOD_BODY))
        with pytest.raises(RemoteParseError) as exc_info:
            await client.parse(artifact)
        assert exc_info.value.status_code == status
        assert str(exc_info.value) == f"Failed with status: {status}"

    @pytest.mark.asyncio
    async def test_malformed_200(self, artifact):
        client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(MalformedResponse):
            await client.parse(artifact)

    @pytest.mark.asyncio
    async def test_transport_error(self, artifact):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="connection refused"):
            await _client(handler).parse(artifact)

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self, artifact):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            await _client(handler).parse(artifact)

    @pytest.mark.asyncio
    async def test_http_client_released_on_failure(self, artifact):
        mock_http = MagicMock()
        mock_http.post = AsyncMock(side_effect=httpx.ConnectError("down"))
        mock_cm = MagicMock()
        mock_cm.__aenter__ = AsyncMock(return_value=mock_http)
        mock_cm.__aexit__ = AsyncMock(return_value=False)

        with patch("voice_todos.core.transcription.httpx.AsyncClient", return_value=mock_cm) as ctor:
            with pytest.raises(TransportError):
                await TranscriptionClient("https://parse.test", "k", timeout=5).parse(artifact)

        assert ctor.call_args.kwargs["timeout"] == 5
        mock_cm.__aexit__.assert_awaited_once()

    def test_from_settings(self):
        from voice_todos.config import settings

        client = TranscriptionClient.from_settings()
        assert client.url == f"{settings.PARSE_API_BASE_URL}/parse-todo"
        assert client.api_key == settings.PARSE_API_KEY

    def test_from_settings_stamps_configured_zone(self, monkeypatch):
        from voice_todos.config import settings

        monkeypatch.setattr(settings, "TIMEZONE", "Asia/Tokyo")
        client = TranscriptionClient.from_settings()
        assert client._clock().tzinfo == ZoneInfo("Asia/Tokyo")
