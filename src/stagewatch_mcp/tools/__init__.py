"""Tool registration for Stagewatch MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from fastmcp import FastMCP

from .. import reports
from ..session import SessionManager
from ..storage import DeploymentStore, PersistenceError
from ..sync import Reconciler, RefreshCoordinator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    get_deployments_in_progress: Any
    get_deployments_by_environment: Any
    get_deployment_history: Any
    get_recent_deployments: Any
    refresh_deployment_data: Any
    get_application_status: Any
    search_deployments: Any
    get_deployment_statistics: Any
    get_pending_deployments: Any
    list_pending_notifications: Any
    acknowledge_notification: Any
    test_console_connection: Any
    get_session_status: Any


def _failure(action: str, exc: Exception) -> dict[str, Any]:
    logger.error("Tool call failed", extra={"action": action, "error": str(exc)})
    return {"success": False, "message": f"Error {action}: {exc}"}


def register_tools(
    server: FastMCP,
    *,
    store: DeploymentStore,
    coordinator: RefreshCoordinator,
    session: SessionManager,
    reconciler: Reconciler,
    clock: Callable[[], datetime] | None = None,
) -> ToolHandles:
    """Register Stagewatch's MCP tools on the server."""

    now = clock or (lambda: datetime.now(timezone.utc))

    def _deployment_list(records, message: str) -> dict[str, Any]:
        return {
            "success": True,
            "count": len(records),
            "message": message,
            "deployments": [reports.deployment_info(record) for record in records],
        }

    def _get_deployments_in_progress(environment: str | None = None) -> dict[str, Any]:
        """List deployments whose status is currently running."""

        logger.info("Querying deployments in progress", extra={"environment": environment or "all"})
        try:
            running = store.list_running()
        except PersistenceError as exc:
            return _failure("querying deployments", exc)
        deployments = reports.in_progress(running, environment=environment, now=now())
        message = (
            f"Found {len(deployments)} deployment(s) in progress"
            if deployments
            else "No deployments in progress currently"
        )
        return {
            "success": True,
            "count": len(deployments),
            "message": message,
            "deployments": deployments,
        }

    def _get_deployments_by_environment(environment: str) -> dict[str, Any]:
        try:
            records = store.list_by_environment(environment)
        except PersistenceError as exc:
            return _failure("querying deployments", exc)
        return _deployment_list(records, f"Found {len(records)} deployment(s) in {environment}")

    def _get_deployment_history(application_name: str, days: int = 30) -> dict[str, Any]:
        try:
            records = store.search(application_name)
        except PersistenceError as exc:
            return _failure("querying history", exc)
        cutoff = now() - timedelta(days=days)
        records = [record for record in records if record.last_updated >= cutoff]
        return _deployment_list(
            records, f"Deployment history for '{application_name}' (last {days} days)"
        )

    def _get_recent_deployments(hours: int = 24) -> dict[str, Any]:
        try:
            records = store.list_since(now() - timedelta(hours=hours))
        except PersistenceError as exc:
            return _failure("querying recent deployments", exc)
        return _deployment_list(records, f"Deployments from the last {hours} hours")

    async def _refresh_deployment_data() -> dict[str, Any]:
        """Run one refresh cycle against the console."""

        logger.info("Refreshing deployment information from the console")
        try:
            result = await coordinator.refresh_cycle()
        except PersistenceError as exc:
            return {
                **_failure("updating data", exc),
                "added_count": 0,
                "updated_count": 0,
                "total_count": 0,
            }
        return result.to_dict()

    def _get_application_status(application_name: str) -> dict[str, Any]:
        try:
            records = store.search(application_name)
        except PersistenceError as exc:
            return {**_failure("querying status", exc), "application_name": application_name}
        return reports.application_status(application_name, records, now())

    def _search_deployments(search_term: str, max_results: int = 20) -> dict[str, Any]:
        try:
            records = store.search(search_term)
        except PersistenceError as exc:
            return {**_failure("searching", exc), "search_term": search_term}
        return reports.search_results(search_term, records, max_results)

    def _get_deployment_statistics(days: int = 30) -> dict[str, Any]:
        try:
            records = store.list_all()
        except PersistenceError as exc:
            return {**_failure("generating statistics", exc), "period_days": days}
        return reports.statistics(records, days=days, now=now())

    def _get_pending_deployments(
        environment: str,
        days_since_last_deployment: int = 7,
    ) -> dict[str, Any]:
        try:
            records = store.list_by_environment(environment)
        except PersistenceError as exc:
            return {**_failure("checking pending deployments", exc), "environment": environment}
        return reports.pending_deployments(
            environment,
            records,
            days_since_last_deployment=days_since_last_deployment,
            now=now(),
        )

    def _list_pending_notifications() -> dict[str, Any]:
        try:
            records = store.list_changed_unnotified()
        except PersistenceError as exc:
            return _failure("listing notifications", exc)
        return {
            "success": True,
            "count": len(records),
            "message": f"{len(records)} status change(s) awaiting notification",
            "notifications": [reports.notification_info(record) for record in records],
        }

    def _acknowledge_notification(plan_name: str, deployed_to: str) -> dict[str, Any]:
        try:
            record = reconciler.acknowledge_notification(store, plan_name, deployed_to)
        except PersistenceError as exc:
            return _failure("acknowledging notification", exc)
        if record is None:
            return {
                "success": False,
                "message": f"No deployment found for '{plan_name}' in '{deployed_to}'",
            }
        return {
            "success": True,
            "message": "Notification acknowledged",
            "deployment": reports.notification_info(record),
        }

    async def _test_console_connection() -> dict[str, Any]:
        result = await coordinator.check_connection()
        payload: dict[str, Any] = {"success": result.ok, "message": result.message}
        if result.error is not None:
            payload["failure_kind"] = result.error.kind
            payload["artifact"] = str(result.error.artifact) if result.error.artifact else None
        return payload

    def _get_session_status() -> dict[str, Any]:
        last = coordinator.last_result
        return {
            "success": True,
            "message": "Session status",
            "session": session.status(),
            "refresh_in_progress": coordinator.busy,
            "last_refresh": last.to_dict() if last is not None else None,
        }

    tool_in_progress = server.tool(
        name="get_deployments_in_progress",
        description="Get deployments currently running, optionally filtered by environment (e.g. Homologation, Production).",
    )(_get_deployments_in_progress)

    tool_by_environment = server.tool(
        name="get_deployments_by_environment",
        description="Get every tracked deployment whose target environment matches the given label.",
    )(_get_deployments_by_environment)

    tool_history = server.tool(
        name="get_deployment_history",
        description="Get the deployment history of an application over the last N days (default 30).",
    )(_get_deployment_history)

    tool_recent = server.tool(
        name="get_recent_deployments",
        description="Get deployments updated within the last N hours (default 24).",
    )(_get_recent_deployments)

    tool_refresh = server.tool(
        name="refresh_deployment_data",
        description=(
            "Log into the deployment console if needed, read the current listing and merge it "
            "into the local history. Returns added/updated counts."
        ),
    )(_refresh_deployment_data)

    tool_app_status = server.tool(
        name="get_application_status",
        description="Get the current deployment status of a specific application.",
    )(_get_application_status)

    tool_search = server.tool(
        name="search_deployments",
        description="Search deployments by plan name, status, environment or details.",
    )(_search_deployments)

    tool_statistics = server.tool(
        name="get_deployment_statistics",
        description="Get deployment statistics per environment, application and weekday for the last N days.",
    )(_get_deployment_statistics)

    tool_pending = server.tool(
        name="get_pending_deployments",
        description="List applications without a recent deployment and recent deployments that did not finish.",
    )(_get_pending_deployments)

    tool_notifications = server.tool(
        name="list_pending_notifications",
        description="List status changes that have not been acknowledged yet, with a readable message.",
    )(_list_pending_notifications)

    tool_acknowledge = server.tool(
        name="acknowledge_notification",
        description="Mark the pending status change of a deployment as notified.",
    )(_acknowledge_notification)

    tool_connection = server.tool(
        name="test_console_connection",
        description="Check that the deployment console session can be authenticated.",
    )(_test_console_connection)

    tool_session = server.tool(
        name="get_session_status",
        description="Report the browser session state and the outcome of the last refresh.",
    )(_get_session_status)

    return ToolHandles(
        get_deployments_in_progress=tool_in_progress,
        get_deployments_by_environment=tool_by_environment,
        get_deployment_history=tool_history,
        get_recent_deployments=tool_recent,
        refresh_deployment_data=tool_refresh,
        get_application_status=tool_app_status,
        search_deployments=tool_search,
        get_deployment_statistics=tool_statistics,
        get_pending_deployments=tool_pending,
        list_pending_notifications=tool_notifications,
        acknowledge_notification=tool_acknowledge,
        test_console_connection=tool_connection,
        get_session_status=tool_session,
    )


__all__ = ["register_tools", "ToolHandles"]
