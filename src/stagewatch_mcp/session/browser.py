"""Owned Playwright resources for the console session."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)

LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--ignore-certificate-errors",
    "--ignore-certificate-errors-spki-list",
)


def _default_launcher() -> Awaitable[Playwright]:
    return async_playwright().start()


class BrowserResources:
    """Lazily created driver, browser, context and page, released in reverse order."""

    def __init__(
        self,
        *,
        headless: bool = True,
        user_agent: str | None = None,
        timeout_ms: int = 30_000,
        launcher: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        self._headless = headless
        self._user_agent = user_agent
        self._timeout_ms = timeout_ms
        self._launcher = launcher or _default_launcher
        self._driver: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def started(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> Page | None:
        return self._page

    async def start(self) -> Page:
        """Create the session on first use and return its page."""

        if self._page is not None:
            return self._page

        try:
            if self._driver is None:
                logger.info("Starting Playwright driver")
                self._driver = await self._launcher()
            if self._browser is None:
                logger.info("Launching Chromium", extra={"headless": self._headless})
                self._browser = await self._driver.chromium.launch(
                    headless=self._headless,
                    args=list(LAUNCH_ARGS),
                    timeout=self._timeout_ms,
                )
            if self._context is None:
                self._context = await self._browser.new_context(
                    user_agent=self._user_agent,
                    ignore_https_errors=True,
                )
            page = await self._context.new_page()
        except Exception:
            logger.exception("Error initializing browser")
            await self.close()
            raise

        page.set_default_timeout(self._timeout_ms)
        page.on("console", lambda message: logger.debug("Browser console: %s", message.text))
        self._page = page
        logger.info("Browser session initialized")
        return page

    async def close(self) -> None:
        """Release page, context, browser and driver; one failure never blocks the rest."""

        page, self._page = self._page, None
        context, self._context = self._context, None
        browser, self._browser = self._browser, None
        driver, self._driver = self._driver, None

        for name, resource, method in (
            ("page", page, "close"),
            ("context", context, "close"),
            ("browser", browser, "close"),
            ("driver", driver, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, method)()
            except Exception as exc:
                logger.warning(
                    "Error releasing browser resource",
                    extra={"resource": name, "error": str(exc)},
                )

    async def __aenter__(self) -> "BrowserResources":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = ["BrowserResources", "LAUNCH_ARGS"]
