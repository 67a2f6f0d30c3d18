"""Read-only views and statistics over stored deployment records."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence

from .classification import contains_label
from .storage.models import DeploymentRecord, format_duration

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def deployment_info(record: DeploymentRecord, *, now: datetime | None = None) -> dict[str, Any]:
    """Serialize a record; with ``now`` the duration is the elapsed time since start."""

    if now is not None and record.start_time is not None:
        duration = now - record.start_time
    else:
        duration = record.duration
    return {
        "plan_name": record.plan_name,
        "deployed_to": record.deployed_to,
        "status": record.status,
        "previous_status": record.previous_status,
        "processed_details": record.processed_details,
        "start_time": _iso(record.start_time),
        "end_time": _iso(record.end_time),
        "duration": format_duration(duration),
        "last_updated": _iso(record.last_updated),
    }


def notification_info(record: DeploymentRecord) -> dict[str, Any]:
    return {
        **deployment_info(record),
        "has_status_changed": record.has_status_changed,
        "notification_sent": record.notification_sent,
        "message": record.notification_message(),
    }


def in_progress(
    records: Iterable[DeploymentRecord],
    *,
    environment: str | None,
    now: datetime,
) -> list[dict[str, Any]]:
    return [
        deployment_info(record, now=now)
        for record in records
        if contains_label(record.deployed_to, environment)
    ]


def status_message(record: DeploymentRecord, now: datetime) -> str:
    if record.is_running:
        elapsed = ""
        if record.start_time is not None:
            elapsed = f" (in progress for {format_duration(now - record.start_time)})"
        return f"The application is being deployed to {record.deployed_to}{elapsed}"
    if record.is_finished:
        duration = ""
        if record.duration is not None:
            duration = f" (duration: {format_duration(record.duration)})"
        return f"Last successful deployment to {record.deployed_to}{duration}"
    return f"Current status: {record.status} in {record.deployed_to}"


def application_status(
    application_name: str,
    records: Sequence[DeploymentRecord],
    now: datetime,
) -> dict[str, Any]:
    if not records:
        return {
            "success": True,
            "application_name": application_name,
            "message": f"No deployments found for application '{application_name}'",
            "recent_history": [],
        }

    ordered = sorted(records, key=lambda record: record.last_updated, reverse=True)
    latest = ordered[0]
    active = [record for record in ordered if record.is_running]
    week_ago = now - timedelta(days=7)
    history = [record for record in ordered if record.last_updated >= week_ago][:5]

    return {
        "success": True,
        "application_name": application_name,
        "current_status": latest.status,
        "environment": latest.deployed_to,
        "last_updated": _iso(latest.last_updated),
        "is_running": latest.is_running,
        "active_deployments": len(active),
        "message": status_message(latest, now),
        "recent_history": [
            {
                "environment": record.deployed_to,
                "status": record.status,
                "date": _iso(record.last_updated),
                "duration": format_duration(record.duration),
            }
            for record in history
        ],
    }


def search_results(
    search_term: str,
    records: Sequence[DeploymentRecord],
    max_results: int,
) -> dict[str, Any]:
    total = len(records)
    limited = list(records[: max(max_results, 0)])
    if total > max_results:
        message = f"Found {total} results, showing first {max_results}"
    else:
        message = f"Found {total} results"
    return {
        "success": True,
        "search_term": search_term,
        "total_found": total,
        "results_returned": len(limited),
        "message": message,
        "results": [
            {
                "plan_name": record.plan_name,
                "environment": record.deployed_to,
                "status": record.status,
                "application_details": record.processed_details,
                "last_updated": _iso(record.last_updated),
                "is_active": record.is_running,
            }
            for record in limited
        ],
    }


def statistics(
    records: Iterable[DeploymentRecord],
    *,
    days: int,
    now: datetime,
) -> dict[str, Any]:
    cutoff = now - timedelta(days=days)
    recent = [record for record in records if record.last_updated >= cutoff]

    by_environment: dict[str, list[DeploymentRecord]] = defaultdict(list)
    for record in recent:
        by_environment[record.deployed_to].append(record)

    environment_stats = []
    for environment, group in by_environment.items():
        durations = [
            record.duration.total_seconds() / 60 for record in group if record.duration is not None
        ]
        environment_stats.append(
            {
                "environment": environment,
                "total_deployments": len(group),
                "successful_deployments": sum(1 for record in group if record.is_finished),
                "active_deployments": sum(1 for record in group if record.is_running),
                "average_duration_minutes": sum(durations) / len(durations) if durations else 0.0,
            }
        )
    environment_stats.sort(key=lambda item: item["total_deployments"], reverse=True)

    by_application: dict[str, list[DeploymentRecord]] = defaultdict(list)
    for record in recent:
        if record.processed_details:
            by_application[record.processed_details].append(record)
    top_applications = sorted(
        (
            {
                "application_name": name,
                "deployment_count": len(group),
                "last_deployment": _iso(max(record.last_updated for record in group)),
            }
            for name, group in by_application.items()
        ),
        key=lambda item: item["deployment_count"],
        reverse=True,
    )[:10]

    weekday_counts = Counter(record.last_updated.weekday() for record in recent)
    daily_activity = [
        {"day_of_week": WEEKDAYS[index], "deployment_count": weekday_counts[index]}
        for index in sorted(weekday_counts)
    ]

    return {
        "success": True,
        "period_days": days,
        "total_deployments": len(recent),
        "active_deployments": sum(1 for record in recent if record.is_running),
        "successful_deployments": sum(1 for record in recent if record.is_finished),
        "unique_applications": len({record.processed_details for record in recent}),
        "environment_statistics": environment_stats,
        "top_applications": top_applications,
        "daily_activity": daily_activity,
        "message": f"Statistics for the last {days} days",
    }


def pending_deployments(
    environment: str,
    records: Sequence[DeploymentRecord],
    *,
    days_since_last_deployment: int,
    now: datetime,
) -> dict[str, Any]:
    """Applications idle past the cutoff, and recent deployments that ended unfinished."""

    cutoff = now - timedelta(days=days_since_last_deployment)

    latest_by_application: dict[str, DeploymentRecord] = {}
    for record in records:
        if not record.processed_details:
            continue
        current = latest_by_application.get(record.processed_details)
        if current is None or record.last_updated > current.last_updated:
            latest_by_application[record.processed_details] = record

    pending = [
        {
            "application_name": name,
            "last_deployment_date": _iso(latest.last_updated),
            "last_status": latest.status,
            "days_since_last_deployment": (now - latest.last_updated).days,
            "is_failed": False,
        }
        for name, latest in latest_by_application.items()
        if latest.last_updated < cutoff
    ]
    pending.sort(key=lambda item: item["days_since_last_deployment"], reverse=True)

    failed = [
        {
            "application_name": record.processed_details,
            "last_deployment_date": _iso(record.last_updated),
            "last_status": record.status,
            "days_since_last_deployment": (now - record.last_updated).days,
            "is_failed": True,
        }
        for record in records
        if not record.is_finished and not record.is_running and record.last_updated >= cutoff
    ]

    return {
        "success": True,
        "environment": environment,
        "pending_applications": pending,
        "failed_deployments": failed,
        "total_pending": len(pending),
        "total_failed": len(failed),
        "message": (
            f"Found {len(pending)} applications without recent deployment and "
            f"{len(failed)} with failed deployments"
        ),
    }


__all__ = [
    "WEEKDAYS",
    "application_status",
    "deployment_info",
    "in_progress",
    "notification_info",
    "pending_deployments",
    "search_results",
    "statistics",
    "status_message",
]
