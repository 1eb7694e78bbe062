# learning_sync/portals/base.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from utils.origin_guard import ensure_on_origin, origin_of

from ..errors import FetchError, SessionOriginError
from ..models import SessionUser

logger = logging.getLogger(__name__)

# Runs inside the portal tab so the request carries the session cookies.
_FETCH_JS = """
async ({ path, method, headers, body }) => {
    const response = await fetch(path, { method, headers, body, credentials: "include" });
    return { status: response.status, url: response.url, body: await response.text() };
}
"""

_TOKEN_JS = """
() => {
    const meta = document.querySelector('meta[name="csrf-token"]');
    if (meta && meta.content) return meta.content;
    const input = document.querySelector('input[name="csrf_token"]');
    return input ? input.value : null;
}
"""

_USER_JS = "() => (window.PortalData && window.PortalData.currentUser) || null"
_CLASSES_JS = "() => (window.PortalData && window.PortalData.currentClasses) || null"


class PortalEngine(ABC):
    """Interface every portal session must implement.

    After ``login`` the engine's page is an authenticated tab on the portal
    origin; the remaining methods read from or fetch through that tab.
    """

    def __init__(self, page: Page, username: str, password: str, base_url: str, organization_domain: Optional[str] = None) -> None:
        self.page, self.username, self.password = page, username, password
        self.base_url, self.organization_domain = base_url.rstrip("/"), organization_domain

    @abstractmethod
    async def login(self) -> None: ...

    async def wait_until_ready(self) -> None:
        """Hook for engines whose landing page keeps loading after login."""

    # ---------------------- SESSION CAPABILITIES ----------------------
    async def fetch(self, path: str, method: str = "GET", headers: Optional[Dict[str, str]] = None, body: Optional[str] = None) -> str:
        """Fetch a portal path with the session's cookies and return the body."""
        ensure_on_origin(self.page, self.base_url)
        try:
            result = await self.page.evaluate(
                _FETCH_JS,
                {"path": path, "method": method, "headers": headers or {}, "body": body},
            )
        except PlaywrightError as e:
            raise FetchError(f"{method} {path} failed in the browser: {e}") from e

        if origin_of(result["url"]) != origin_of(self.base_url):
            raise FetchError(f"{method} {path} was redirected off the portal to {result['url']!r}; session may have expired")
        if not 200 <= result["status"] < 300:
            raise FetchError(f"{method} {path} returned HTTP {result['status']}")
        logger.debug("%s %s -> %s (%d bytes)", method, path, result["status"], len(result["body"]))
        return result["body"]

    async def read_session_token(self) -> str:
        token = await self._read(_TOKEN_JS)
        if not token:
            raise SessionOriginError("CSRF token missing from portal page")
        return token

    async def read_session_user(self) -> SessionUser:
        raw: Any = await self._read(_USER_JS)
        if not raw or not raw.get("login"):
            raise SessionOriginError("PortalData.currentUser missing; we might not be on the portal page")
        return SessionUser.from_portal(raw)

    async def read_class_ids(self) -> List[int]:
        raw = await self._read(_CLASSES_JS)
        if raw is None:
            raise SessionOriginError("PortalData.currentClasses missing; we might not be on the portal page")
        return [int(class_id) for class_id in raw]

    # shared helpers ↓
    async def _read(self, script: str) -> Any:
        ensure_on_origin(self.page, self.base_url)
        return await self.page.evaluate(script)
