"""
Study Platform Client

HTTP client for the platform services the session engine consumes: item
content, attempt recording and scheduling, quiz results, bookmarks and hints.
A single client implements every remote collaborator protocol.

Usage:
    async with PlatformClient.from_settings(get_settings(), owner_id="u1") as client:
        items = await client.fetch_items(["q1", "q2"])
        await client.record_attempt(record)

Calls are never retried here; failures raise RemoteCallError and the engine
decides whether they block.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from config import Settings
from src.engine.errors import RemoteCallError
from src.engine.models import AttemptRecord, Item, ItemType, SessionSummary


class PlatformClient:
    """
    Async HTTP client for the study platform API.

    Implements:
    - ContentSource (batch item fetch)
    - AttemptSink (attempts and session summaries)
    - BookmarkRemote (toggle and list)
    - HintProvider
    """

    ITEMS_ENDPOINT = "/items:batchGet"
    ATTEMPTS_ENDPOINT = "/attempts"
    RESULTS_ENDPOINT = "/quiz-results"
    BOOKMARK_TOGGLE_ENDPOINT = "/bookmarks:toggle"
    BOOKMARKS_ENDPOINT = "/bookmarks"
    HINTS_ENDPOINT = "/hints"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        owner_id: str | None = None,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.owner_id = owner_id
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, owner_id: str | None = None) -> "PlatformClient":
        return cls(
            base_url=settings.api_base_url,
            api_key=settings.api_key,
            owner_id=owner_id,
            timeout=settings.api_timeout_seconds,
        )

    async def __aenter__(self) -> "PlatformClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["X-API-Key"] = self.api_key

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send one request and return its JSON body (empty dict for no content)."""
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Connection error on {method} {path}: {e}")
            raise RemoteCallError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 300:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
            logger.warning(f"{method} {path} returned {response.status_code}: {detail}")
            raise RemoteCallError(f"{method} {path} returned {response.status_code}: {detail}", response.status_code)

        if not response.content:
            return {}
        return response.json()

    # =========================================================================
    # Content
    # =========================================================================

    async def fetch_items(self, item_ids: list[str]) -> list[Item]:
        """
        Batch-fetch items.

        Returns items in request order; ids the platform does not know are
        omitted.
        """
        if not item_ids:
            return []
        data = await self._request("POST", self.ITEMS_ENDPOINT, json={"ids": list(item_ids)})
        by_id = {}
        for raw in data.get("items", []):
            item = Item.from_dict(raw)
            by_id[item.id] = item
        items = [by_id[i] for i in item_ids if i in by_id]
        logger.debug(f"Fetched {len(items)}/{len(item_ids)} items from platform")
        return items

    # =========================================================================
    # Attempts & results
    # =========================================================================

    async def record_attempt(self, record: AttemptRecord) -> None:
        payload = record.to_payload()
        if self.owner_id:
            payload["userId"] = self.owner_id
        await self._request("POST", self.ATTEMPTS_ENDPOINT, json=payload)

    async def submit_summary(self, summary: SessionSummary) -> None:
        await self._request("POST", self.RESULTS_ENDPOINT, json=summary.to_payload())

    # =========================================================================
    # Bookmarks
    # =========================================================================

    async def toggle_bookmark(self, item_id: str, item_type: ItemType) -> bool:
        data = await self._request(
            "POST",
            self.BOOKMARK_TOGGLE_ENDPOINT,
            json={"itemId": item_id, "itemType": ItemType(item_type).value, "userId": self.owner_id},
        )
        return bool(data.get("bookmarked", False))

    async def list_bookmarks(self) -> set[str]:
        params = {"userId": self.owner_id} if self.owner_id else None
        data = await self._request("GET", self.BOOKMARKS_ENDPOINT, params=params)
        return {str(b["itemId"]) for b in data.get("bookmarks", [])}

    # =========================================================================
    # Hints
    # =========================================================================

    async def get_hint(self, item_id: str) -> str:
        data = await self._request("POST", self.HINTS_ENDPOINT, json={"itemId": item_id})
        return data.get("hint", "")
