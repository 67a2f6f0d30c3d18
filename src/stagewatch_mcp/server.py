"""FastMCP server bootstrap for Stagewatch."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from fastmcp import FastMCP

from . import __version__
from .config import StagewatchSettings, get_settings
from .extraction import ListingExtractor
from .session import BrowserResources, SessionManager
from .storage import DeploymentStore, PersistenceError
from .sync import Reconciler, RefreshCoordinator, run_monitor
from .tools import register_tools

logger = logging.getLogger(__name__)


def configure_logging(level: str, log_file: Path | None = None) -> None:
    """Configure root logging; stdout is reserved for the stdio transport."""

    handlers: list[logging.Handler]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers = [logging.FileHandler(log_file, encoding="utf-8")]
    else:
        handlers = [logging.StreamHandler()]
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def create_server(
    settings: Optional[StagewatchSettings] = None,
    *,
    store: DeploymentStore | None = None,
    resources: BrowserResources | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the deployment tracking tools."""

    settings = settings or get_settings()
    now = clock or (lambda: datetime.now(timezone.utc))

    store = store or DeploymentStore(settings.db_path)
    resources = resources or BrowserResources(
        headless=settings.headless,
        user_agent=settings.user_agent,
        timeout_ms=settings.navigation_timeout_ms,
    )
    session = SessionManager(settings, resources, clock=now)
    extractor = ListingExtractor(
        settings.listing_url,
        table_timeout_ms=settings.table_timeout_ms,
        clock=now,
    )
    reconciler = Reconciler()
    coordinator = RefreshCoordinator(session, extractor, reconciler, store)

    console_issues = settings.validate_console()
    if console_issues:
        logger.warning("Console settings incomplete", extra={"issues": console_issues})

    monitor_state: dict[str, Any] = {"task": None, "stop": None, "sessions": 0}

    async def _start_monitor() -> None:
        stop_event = asyncio.Event()
        monitor_state["stop"] = stop_event
        monitor_state["task"] = asyncio.create_task(
            run_monitor(coordinator, settings.poll_interval_seconds, stop_event=stop_event)
        )
        logger.info(
            "Monitor started", extra={"interval_seconds": settings.poll_interval_seconds}
        )

    async def _stop_monitor() -> None:
        task = monitor_state["task"]
        if task is None:
            return
        monitor_state["task"] = None
        monitor_state["stop"].set()
        try:
            await task
        except Exception:
            logger.exception("Monitor ended with an error")

    async def _release_browser() -> None:
        try:
            await _stop_monitor()
        finally:
            await session.close()

    async def _shutdown() -> None:
        try:
            await _release_browser()
        finally:
            store.close()
            logger.info("Stagewatch resources released")

    # FastMCP enters the lifespan once per client session. The monitor and the
    # browser follow the active sessions; the store lives until main() exits.
    @asynccontextmanager
    async def lifespan(_server: FastMCP):
        monitor_state["sessions"] += 1
        if monitor_state["sessions"] == 1 and settings.monitor_enabled:
            await _start_monitor()
        try:
            yield {}
        finally:
            monitor_state["sessions"] -= 1
            if monitor_state["sessions"] == 0:
                await _release_browser()

    server = FastMCP(
        name="Stagewatch MCP",
        version=__version__,
        instructions=(
            "Stagewatch tracks deployment plans listed in a web deployment console. "
            "Use refresh_deployment_data to pull the latest listing, then query "
            "in-progress deployments, history, statistics and pending notifications."
        ),
        lifespan=lifespan,
    )

    handles = register_tools(
        server,
        store=store,
        coordinator=coordinator,
        session=session,
        reconciler=reconciler,
        clock=now,
    )

    def status_payload() -> dict[str, Any]:
        storage: dict[str, Any] = {
            "path": str(store.path),
            "available": False,
            "record_count": None,
            "pending_notifications": None,
            "error": None,
        }
        try:
            storage["available"] = store.ping()
            storage["record_count"] = store.count()
            storage["pending_notifications"] = len(store.list_changed_unnotified())
        except PersistenceError as exc:
            storage["error"] = str(exc)

        last = coordinator.last_result
        task = monitor_state["task"]
        return {
            "timestamp": now().isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "console": {
                "login_url": settings.login_url,
                "listing_url": settings.listing_url,
                "username": settings.username,
                "configured": not console_issues,
                "issues": console_issues,
            },
            "storage": storage,
            "session": session.status(),
            "refresh": {
                "in_progress": coordinator.busy,
                "last_result": last.to_dict() if last is not None else None,
            },
            "monitor": {
                "enabled": settings.monitor_enabled,
                "interval_seconds": settings.poll_interval_seconds,
                "running": task is not None and not task.done(),
            },
        }

    @server.resource(
        "resource://stagewatch/status",
        name="stagewatch_status",
        description="Provides the current runtime status for the Stagewatch MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource() -> str:
        """Return a JSON string summarizing runtime state."""

        return json.dumps(status_payload())

    setattr(server, "store", store)
    setattr(server, "session_manager", session)
    setattr(server, "coordinator", coordinator)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_payload", status_payload)
    setattr(server, "shutdown", _shutdown)
    return server


def main() -> None:
    """Entry point for running the Stagewatch MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    try:
        server = create_server(settings)
    except PersistenceError as exc:
        logger.error("Deployment store unavailable", extra={"error": str(exc)})
        raise SystemExit(1) from exc

    logger.info(
        "Launching Stagewatch MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "db_path": str(settings.db_path),
            "monitor_enabled": settings.monitor_enabled,
        },
    )
    try:
        server.run()
    finally:
        server.store.close()
        logger.info("Deployment store closed")


if __name__ == "__main__":
    main()
