"""Notion REST adapter: the handful of endpoints the sync needs."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import FetchError

logger = logging.getLogger(__name__)

NOTION_API_BASE_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
REQUEST_TIMEOUT_SECONDS = 30
PAGE_SIZE = 100


class RateLimited(FetchError):
    """Notion answered 429."""


def _is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, RateLimited)


class NotionStore:
    """Blocking Notion client. The upsert executor calls it via asyncio.to_thread."""

    def __init__(self, token: str, session: Optional[requests.Session] = None) -> None:
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            }
        )

    # ---------------------- DATABASES ----------------------
    def query_collection(self, database_id: str) -> List[Dict[str, Any]]:
        """Every page in the database, following pagination."""
        pages: List[Dict[str, Any]] = []
        payload: Dict[str, Any] = {"page_size": PAGE_SIZE}
        while True:
            body = self._request("POST", f"/databases/{database_id}/query", payload)
            pages.extend(body.get("results", []))
            if not body.get("has_more"):
                break
            payload["start_cursor"] = body["next_cursor"]
        logger.debug("Queried %d pages from database %s", len(pages), database_id)
        return pages

    def get_collection_schema(self, database_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/databases/{database_id}").get("properties", {})

    # ---------------------- PAGES ----------------------
    def create_record(self, database_id: str, properties: Dict[str, Any], children: List[Dict[str, Any]]) -> Dict[str, Any]:
        payload = {"parent": {"database_id": database_id}, "properties": properties, "children": children}
        return self._request("POST", "/pages", payload)

    def update_record(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", f"/pages/{page_id}", {"properties": properties})

    # ---------------------- BLOCKS ----------------------
    def list_blocks(self, block_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/blocks/{block_id}/children?page_size={PAGE_SIZE}").get("results", [])

    def update_block(self, block_id: str, block: Dict[str, Any]) -> Dict[str, Any]:
        payload = {key: value for key, value in block.items() if key not in ("object", "type")}
        return self._request("PATCH", f"/blocks/{block_id}", payload)

    # ---------------------- TRANSPORT ----------------------
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception(_is_rate_limited),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = NOTION_API_BASE_URL + path
        try:
            response = self.session.request(method, url, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException as exc:
            raise FetchError(f"Notion {method} {path} failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimited(f"Notion {method} {path} rate limited")
        if not response.ok:
            try:
                detail = json.dumps(response.json())
            except ValueError:
                detail = response.text
            raise FetchError(f"Notion {method} {path} returned HTTP {response.status_code}: {detail}")
        return response.json()
