"""Authenticated session management for the deployment console."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import StagewatchSettings
from .browser import BrowserResources
from .utils import artifact_path, is_login_url

logger = logging.getLogger(__name__)

USERNAME_SELECTOR = (
    "input[type='text'], input[type='email'], input[name*='user' i], input[id*='user' i]"
)
PASSWORD_SELECTOR = "input[type='password']"
SUBMIT_SELECTOR = "input[type='submit'], button[type='submit'], .btn-primary"


class AuthError(RuntimeError):
    """Describes why the console session could not be authenticated."""

    def __init__(self, kind: str, message: str, *, artifact: Path | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.artifact = artifact


@dataclass(slots=True)
class AuthResult:
    """Outcome of an authentication attempt."""

    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return "Authenticated" if self.error is None else self.error.message

    @classmethod
    def success(cls) -> "AuthResult":
        return cls()

    @classmethod
    def failure(cls, error: AuthError) -> "AuthResult":
        return cls(error=error)


class SessionManager:
    """Keep one browser session logged into the console.

    The session counts as usable while the last credential login is younger
    than ``session_timeout_minutes`` and the liveness probe can load the
    listing page without being bounced to a login screen. Failures are
    returned as :class:`AuthResult` values, never raised.
    """

    def __init__(
        self,
        settings: StagewatchSettings,
        resources: BrowserResources,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._resources = resources
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_login: datetime | None = None

    @property
    def page(self) -> Page | None:
        return self._resources.page

    @property
    def last_login(self) -> datetime | None:
        return self._last_login

    @property
    def session_timeout(self) -> timedelta:
        return timedelta(minutes=self._settings.session_timeout_minutes)

    def session_expired(self) -> bool:
        if self._last_login is None:
            return True
        return self._clock() - self._last_login > self.session_timeout

    async def ensure_authenticated(self) -> AuthResult:
        """Return success when the session is usable, logging in otherwise.

        Past the timeout the login flow runs again, but it only re-enters
        credentials when the probe fails; a live session is kept as is.
        """

        if (
            not self._resources.started
            or self.session_expired()
            or not await self.probe()
        ):
            return await self.login()
        return AuthResult.success()

    async def probe(self) -> bool:
        """Check whether the listing page loads without a login redirect."""

        page = self._resources.page
        if page is None:
            return False
        if is_login_url(page.url):
            return False
        try:
            response = await page.goto(self._settings.listing_url)
        except PlaywrightError as exc:
            logger.debug("Liveness probe failed", extra={"error": str(exc)})
            return False
        if response is None or response.status != 200:
            return False
        return not is_login_url(page.url)

    async def login(self) -> AuthResult:
        """Run the credential login flow once and report the outcome."""

        try:
            page = await self._resources.start()
        except Exception as exc:
            return self._failure("login-error", f"Browser could not be started: {exc}")

        settings = self._settings
        logger.info("Starting login process", extra={"login_url": settings.login_url})
        try:
            response = await page.goto(settings.login_url)
            if response is not None:
                logger.info("Login page loaded", extra={"status": response.status})
            await page.wait_for_load_state("networkidle")

            if await self.probe():
                logger.info("Already logged in")
                return AuthResult.success()

            try:
                await page.wait_for_selector(USERNAME_SELECTOR, timeout=settings.field_timeout_ms)
                await page.wait_for_selector(PASSWORD_SELECTOR, timeout=settings.field_timeout_ms)
            except PlaywrightTimeoutError:
                return await self._capture_failure(
                    page, "login-timeout", f"Login fields not found at {page.url}"
                )

            logger.info("Filling credentials", extra={"username": settings.username})
            await page.fill(USERNAME_SELECTOR, settings.username)
            await page.fill(PASSWORD_SELECTOR, settings.password.get_secret_value())
            await page.click(SUBMIT_SELECTOR)
            await page.wait_for_load_state("networkidle")
        except Exception as exc:
            return await self._capture_failure(page, "login-error", f"Error during login: {exc}")

        if not await self.probe():
            return await self._capture_failure(
                page, "login-failed", f"Login was not accepted; current URL {page.url}"
            )

        self._last_login = self._clock()
        logger.info("Login successful")
        return AuthResult.success()

    def _failure(self, kind: str, message: str, artifact: Path | None = None) -> AuthResult:
        logger.error(
            "Authentication failed",
            extra={"kind": kind, "reason": message, "artifact": str(artifact) if artifact else None},
        )
        return AuthResult.failure(AuthError(kind, message, artifact=artifact))

    async def _capture_failure(self, page: Page, kind: str, message: str) -> AuthResult:
        path = artifact_path(self._settings.diagnostics_path, kind, self._clock())
        artifact: Path | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
            artifact = path
        except (PlaywrightError, OSError) as exc:
            logger.warning("Could not capture diagnostic screenshot", extra={"error": str(exc)})
        return self._failure(kind, message, artifact)

    def status(self) -> dict[str, Any]:
        """Summarize the session for status tools."""

        now = self._clock()
        age = (now - self._last_login).total_seconds() if self._last_login else None
        return {
            "started": self._resources.started,
            "last_login": self._last_login.isoformat() if self._last_login else None,
            "session_age_seconds": age,
            "session_timeout_minutes": self._settings.session_timeout_minutes,
            "within_timeout": not self.session_expired(),
        }

    async def close(self) -> None:
        await self._resources.close()


__all__ = [
    "AuthError",
    "AuthResult",
    "PASSWORD_SELECTOR",
    "SUBMIT_SELECTOR",
    "SessionManager",
    "USERNAME_SELECTOR",
]
