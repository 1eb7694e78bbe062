# learning_sync/portals/learning_google.py
from __future__ import annotations

import logging
from urllib.parse import urlencode, urlsplit

from tenacity import (
    retry, stop_after_attempt, wait_exponential,
    retry_if_not_exception_type, before_sleep_log
)

from utils.origin_guard import origin_of

from ..errors import LoginError
from .base import PortalEngine
from . import register_portal

logger = logging.getLogger(__name__)

GOOGLE_LOGIN_HOST = "accounts.google.com"


@register_portal("learning_google")
class LearningGoogleLogin(PortalEngine):
    """Learning portal reached through "Sign in with Google".

    The portal's google_begin endpoint redirects to Google; after the
    email/password steps Google sends the tab back to the portal, which
    lands on /u/{username}/portal.
    """

    BEGIN_PATH = "/do/authentication/google/google_begin"

    def begin_url(self) -> str:
        url = self.base_url + self.BEGIN_PATH
        if self.organization_domain:
            url += "?" + urlencode({"google_domain": self.organization_domain})
        return url

    # ---------------------- LOGIN ----------------------
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=3, max=15),
        retry=retry_if_not_exception_type(LoginError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def login(self) -> None:
        begin_url = self.begin_url()
        logger.debug("Google begin URL: %s", begin_url)
        await self.page.goto(begin_url, wait_until="domcontentloaded")

        if urlsplit(self.page.url).hostname != GOOGLE_LOGIN_HOST:
            raise LoginError(f"Google begin URL did not redirect to Google login (landed on {self.page.url})")

        # GOOGLE SIGN-IN FLOW
        # email
        await self.page.locator('input[type="email"]').fill(self.username)
        logger.debug("Typed in email: %s", self.username)
        await self._click_next()

        # password
        password = self.page.locator('input[type="password"]')
        await password.wait_for(state="visible")
        logger.debug("Found password input")
        await password.fill(self.password)
        await self._click_next()

        # back on the portal
        await self.page.wait_for_url(lambda url: origin_of(url) == origin_of(self.base_url), timeout=60_000)
        logger.info("Logged in to %s", self.base_url)

    async def wait_until_ready(self) -> None:
        """Wait for /u/{username}/portal."""
        await self.page.wait_for_function('window.location.pathname.split("/")[3] === "portal"')
        await self.page.wait_for_load_state("domcontentloaded")
        logger.debug("Learning portal ready")

    async def _click_next(self) -> None:
        await self.page.get_by_role("button", name="Next").click()
        logger.debug('Clicked "Next" button')
