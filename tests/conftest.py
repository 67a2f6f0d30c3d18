from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from stagewatch_mcp.config import StagewatchSettings
from stagewatch_mcp.session import BrowserResources, SessionManager
from stagewatch_mcp.storage import DeploymentStore

LOGIN_URL = "https://console.example.com/login"
LISTING_URL = "https://console.example.com/deployments"
HOME_URL = "https://console.example.com/home"


class Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeResponse:
    def __init__(self, status: int = 200) -> None:
        self.status = status


class FakeCell:
    def __init__(self, text: str | None) -> None:
        self._text = text

    async def text_content(self) -> str | None:
        return self._text


class FakeRow:
    def __init__(self, *cells: str | None, header: bool = False) -> None:
        self.cells = [FakeCell(text) for text in cells]
        self.header = header

    async def query_selector_all(self, selector: str) -> list[FakeCell]:
        return list(self.cells)


class FakePage:
    """Minimal stand-in for a Playwright page on the deployment console."""

    def __init__(
        self,
        *,
        events: list[str] | None = None,
        logged_in: bool = False,
        accept_credentials: bool = True,
        missing_selectors: tuple[str, ...] = (),
        table_present: bool = True,
        rows: list[FakeRow] | None = None,
    ) -> None:
        self.url = "about:blank"
        self.events = events if events is not None else []
        self.logged_in = logged_in
        self.accept_credentials = accept_credentials
        self.missing_selectors = set(missing_selectors)
        self.table_present = table_present
        self.rows = rows or []
        self.calls: list[tuple[str, Any]] = []
        self.filled: dict[str, str] = {}
        self.screenshots: list[str] = []
        self.default_timeout: int | None = None
        self.listeners: dict[str, Any] = {}
        self.close_error: Exception | None = None

    def set_default_timeout(self, timeout: int) -> None:
        self.default_timeout = timeout

    def on(self, event: str, callback: Any) -> None:
        self.listeners[event] = callback

    async def goto(self, url: str) -> FakeResponse:
        self.calls.append(("goto", url))
        if url == LOGIN_URL and self.logged_in:
            self.url = HOME_URL
        elif url == LISTING_URL and not self.logged_in:
            self.url = LOGIN_URL
        else:
            self.url = url
        return FakeResponse(200)

    async def wait_for_load_state(self, state: str) -> None:
        self.calls.append(("wait_for_load_state", state))

    async def wait_for_selector(self, selector: str, timeout: int | None = None) -> None:
        self.calls.append(("wait_for_selector", selector))
        if selector in self.missing_selectors:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        if selector == "table.table" and not self.table_present:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def fill(self, selector: str, value: str) -> None:
        self.calls.append(("fill", selector))
        self.filled[selector] = value

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))
        if self.accept_credentials:
            self.logged_in = True
            self.url = HOME_URL

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        self.screenshots.append(path)
        Path(path).write_bytes(b"\x89PNG")

    async def query_selector_all(self, selector: str) -> list[FakeRow]:
        self.calls.append(("query_selector_all", selector))
        if ":not(.table-header)" in selector:
            return [row for row in self.rows if not row.header]
        return list(self.rows)

    async def close(self) -> None:
        self.events.append("page")
        if self.close_error is not None:
            raise self.close_error


class _Closable:
    def __init__(self, name: str, events: list[str]) -> None:
        self.name = name
        self.events = events
        self.close_error: Exception | None = None

    async def close(self) -> None:
        self.events.append(self.name)
        if self.close_error is not None:
            raise self.close_error


class FakeContext(_Closable):
    def __init__(self, page: FakePage, events: list[str]) -> None:
        super().__init__("context", events)
        self.page = page
        self.options: dict[str, Any] = {}

    async def new_page(self) -> FakePage:
        return self.page


class FakeBrowser(_Closable):
    def __init__(self, context: FakeContext, events: list[str]) -> None:
        super().__init__("browser", events)
        self.context = context

    async def new_context(self, **kwargs: Any) -> FakeContext:
        self.context.options = kwargs
        return self.context


class FakeChromium:
    def __init__(self, browser: FakeBrowser) -> None:
        self.browser = browser
        self.launch_options: dict[str, Any] = {}

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        self.launch_options = kwargs
        return self.browser


class FakeDriver:
    def __init__(self, chromium: FakeChromium, events: list[str]) -> None:
        self.chromium = chromium
        self.events = events
        self.stop_error: Exception | None = None

    async def stop(self) -> None:
        self.events.append("driver")
        if self.stop_error is not None:
            raise self.stop_error


@dataclass
class FakeConsole:
    page: FakePage
    context: FakeContext
    browser: FakeBrowser
    driver: FakeDriver
    events: list[str]
    launches: list[int] = field(default_factory=list)

    async def launcher(self) -> FakeDriver:
        self.launches.append(1)
        return self.driver

    def resources(self, timeout_ms: int = 30_000) -> BrowserResources:
        return BrowserResources(
            headless=True,
            user_agent="stagewatch-tests",
            timeout_ms=timeout_ms,
            launcher=self.launcher,
        )


def build_console(**page_options: Any) -> FakeConsole:
    events: list[str] = []
    page = FakePage(events=events, **page_options)
    context = FakeContext(page, events)
    browser = FakeBrowser(context, events)
    driver = FakeDriver(FakeChromium(browser), events)
    return FakeConsole(page=page, context=context, browser=browser, driver=driver, events=events)


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> StagewatchSettings:
    monkeypatch.setenv("STAGEWATCH_LOGIN_URL", LOGIN_URL)
    monkeypatch.setenv("STAGEWATCH_LISTING_URL", LISTING_URL)
    monkeypatch.setenv("STAGEWATCH_USERNAME", "deployer")
    monkeypatch.setenv("STAGEWATCH_PASSWORD", "s3cret")
    monkeypatch.setenv("STAGEWATCH_DB_PATH", str(tmp_path / "stagewatch.db"))
    monkeypatch.setenv("STAGEWATCH_DIAGNOSTICS_PATH", str(tmp_path / "diagnostics"))
    return StagewatchSettings()


@pytest.fixture
def console() -> FakeConsole:
    return build_console()


@pytest.fixture
def store(tmp_path: Path):
    deployment_store = DeploymentStore(tmp_path / "records.db")
    yield deployment_store
    deployment_store.close()


@pytest.fixture
def session_factory(settings: StagewatchSettings, clock: Clock):
    def factory(console: FakeConsole) -> SessionManager:
        return SessionManager(settings, console.resources(), clock=clock)

    return factory
