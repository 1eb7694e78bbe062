# utils/origin_guard.py
from urllib.parse import urlsplit

from playwright.async_api import Page

from learning_sync.errors import SessionOriginError


def origin_of(url: str) -> str:
    """scheme://host[:port] of a URL, lower-cased."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def ensure_on_origin(page: Page, base_url: str) -> None:
    """Raise SessionOriginError unless the page is on the portal origin."""
    current = page.url
    if origin_of(current) != origin_of(base_url):
        raise SessionOriginError(f"Session is on {current!r}, expected origin {origin_of(base_url)!r}")
