"""
Unit tests for the study platform HTTP client.
"""

import httpx
import pytest
import pytest_asyncio
from httpx import Request, Response

from src.engine.errors import RemoteCallError
from src.engine.models import AttemptRecord, ItemType, Mode, SessionSummary
from src.integrations.platform_client import PlatformClient


@pytest_asyncio.fixture
async def client():
    """Platform client instance with an open HTTP client."""
    client = PlatformClient(base_url="http://localhost:8080/api/v1/", api_key="k-123", owner_id="u1")
    await client._ensure_client()
    yield client
    await client.close()


def _patch(monkeypatch, client, handler):
    """Route every request through `handler(method, url, kwargs)` and record calls."""
    calls = []

    async def mock_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return handler(method, url, kwargs)

    monkeypatch.setattr(client._client, "request", mock_request)
    return calls


class TestClientSetup:
    @pytest.mark.asyncio
    async def test_headers_and_base_url(self, client):
        assert client.base_url == "http://localhost:8080/api/v1"
        assert client._client.headers["X-API-Key"] == "k-123"

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        client = PlatformClient(base_url="http://localhost:8080")
        async with client:
            assert client._client is not None
        assert client._client is None


class TestFetchItems:
    @pytest.mark.asyncio
    async def test_returns_items_in_request_order(self, client, monkeypatch):
        payload = {
            "items": [
                {"id": "b", "question": "B?", "options": ["x", "y"], "correctAnswer": "y"},
                {"id": "a", "front": "A?", "back": "ans", "type": "flashcard", "topicId": "t1"},
            ]
        }
        calls = _patch(monkeypatch, client, lambda m, u, k: Response(200, json=payload, request=Request(m, u)))

        items = await client.fetch_items(["a", "missing", "b"])

        assert [i.id for i in items] == ["a", "b"]
        assert items[0].type is ItemType.FLASHCARD
        assert items[0].question == "A?"
        assert items[0].topic_id == "t1"
        assert items[1].correct_option == "y"
        assert calls[0][0] == "POST"
        assert calls[0][1] == PlatformClient.ITEMS_ENDPOINT
        assert calls[0][2]["json"] == {"ids": ["a", "missing", "b"]}

    @pytest.mark.asyncio
    async def test_empty_request_skips_call(self, client, monkeypatch):
        calls = _patch(monkeypatch, client, lambda m, u, k: Response(500))

        assert await client.fetch_items([]) == []
        assert calls == []

    @pytest.mark.asyncio
    async def test_server_error_raises(self, client, monkeypatch):
        _patch(
            monkeypatch,
            client,
            lambda m, u, k: Response(503, json={"detail": "maintenance"}, request=Request(m, u)),
        )

        with pytest.raises(RemoteCallError) as excinfo:
            await client.fetch_items(["a"])

        assert excinfo.value.status_code == 503
        assert "maintenance" in str(excinfo.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [["bad", "request"], "bad request"])
    async def test_non_object_error_body_raises(self, client, monkeypatch, body):
        _patch(monkeypatch, client, lambda m, u, k: Response(400, json=body, request=Request(m, u)))

        with pytest.raises(RemoteCallError) as excinfo:
            await client.fetch_items(["a"])

        assert excinfo.value.status_code == 400
        assert "bad" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_transport_error_raises_without_retry(self, client, monkeypatch):
        count = 0

        def handler(method, url, kwargs):
            nonlocal count
            count += 1
            raise httpx.ConnectError("refused", request=Request(method, url))

        _patch(monkeypatch, client, handler)

        with pytest.raises(RemoteCallError):
            await client.fetch_items(["a"])
        assert count == 1


class TestAttemptsAndResults:
    @pytest.mark.asyncio
    async def test_record_attempt_payload(self, client, monkeypatch):
        calls = _patch(monkeypatch, client, lambda m, u, k: Response(201, request=Request(m, u)))
        record = AttemptRecord(item_id="q1", selected_answer="Paris", is_correct=True, session_id="s1")

        await client.record_attempt(record)

        method, url, kwargs = calls[0]
        assert (method, url) == ("POST", PlatformClient.ATTEMPTS_ENDPOINT)
        assert kwargs["json"]["itemId"] == "q1"
        assert kwargs["json"]["isCorrect"] is True
        assert kwargs["json"]["userId"] == "u1"

    @pytest.mark.asyncio
    async def test_submit_summary_payload(self, client, monkeypatch):
        calls = _patch(monkeypatch, client, lambda m, u, k: Response(200, json={}, request=Request(m, u)))
        summary = SessionSummary(
            session_id="s1", owner_id="u1", mode=Mode.QUICK_FIRE, total_questions=5, score=4,
            game_score=500, xp_earned=100,
        )

        await client.submit_summary(summary)

        body = calls[0][2]["json"]
        assert calls[0][1] == PlatformClient.RESULTS_ENDPOINT
        assert body["score"] == 4
        assert body["mode"] == "quick_fire"
        assert body["gameScore"] == 500


class TestBookmarksAndHints:
    @pytest.mark.asyncio
    async def test_toggle_bookmark(self, client, monkeypatch):
        calls = _patch(
            monkeypatch, client, lambda m, u, k: Response(200, json={"bookmarked": True}, request=Request(m, u))
        )

        assert await client.toggle_bookmark("q1", ItemType.MCQ) is True
        assert calls[0][2]["json"] == {"itemId": "q1", "itemType": "mcq", "userId": "u1"}

    @pytest.mark.asyncio
    async def test_list_bookmarks(self, client, monkeypatch):
        payload = {"bookmarks": [{"itemId": "q1"}, {"itemId": 7}]}
        _patch(monkeypatch, client, lambda m, u, k: Response(200, json=payload, request=Request(m, u)))

        assert await client.list_bookmarks() == {"q1", "7"}

    @pytest.mark.asyncio
    async def test_get_hint(self, client, monkeypatch):
        _patch(monkeypatch, client, lambda m, u, k: Response(200, json={"hint": "Capital city"}, request=Request(m, u)))

        assert await client.get_hint("q1") == "Capital city"
