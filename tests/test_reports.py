from __future__ import annotations

from datetime import datetime, timedelta, timezone

from stagewatch_mcp import reports
from stagewatch_mcp.classification import MULTIPLE_APPLICATIONS
from stagewatch_mcp.storage import DeploymentRecord, format_duration

NOW = datetime(2025, 3, 12, 12, 0, 0, tzinfo=timezone.utc)  # Wednesday


def _record(
    plan: str,
    env: str,
    status: str,
    *,
    app: str = "AppOne",
    updated: datetime = NOW,
    **extra,
) -> DeploymentRecord:
    return DeploymentRecord(
        plan_name=plan,
        deployed_to=env,
        status=status,
        details=app,
        processed_details=app,
        first_detected=updated,
        last_updated=updated,
        **extra,
    )


def test_format_duration() -> None:
    assert format_duration(None) is None
    assert format_duration(timedelta(minutes=5)) == "00:05:00"
    assert format_duration(timedelta(hours=26, seconds=7)) == "26:00:07"


def test_notification_messages() -> None:
    finished = _record(
        "Plan A", "PRD - Production", "Finished successfully", duration=timedelta(minutes=5)
    )
    running = _record("Plan B", "HML Homologation", "Running", app=MULTIPLE_APPLICATIONS)
    other = _record("Plan C", "QA", "Aborted")

    assert finished.notification_message() == (
        "AppOne has finished its deployment to Production (Duration: 00:05:00)"
    )
    assert running.notification_message() == (
        "Multiple applications are deploying their deployments to Homologation"
    )
    assert other.notification_message() == "AppOne is in process its deployment to QA"


def test_in_progress_duration_counts_from_start() -> None:
    running = _record("Plan A", "Production", "Running", start_time=NOW - timedelta(minutes=12))

    [info] = reports.in_progress([running], environment="prod", now=NOW)

    assert info["duration"] == "00:12:00"
    assert reports.in_progress([running], environment="homolog", now=NOW) == []


def test_application_status_for_running_and_missing_app() -> None:
    records = [
        _record("Plan A", "Production", "Finished", updated=NOW - timedelta(days=2)),
        _record(
            "Plan B",
            "Homologation",
            "Running",
            updated=NOW,
            start_time=NOW - timedelta(minutes=3),
        ),
        _record("Plan C", "Production", "Finished", updated=NOW - timedelta(days=20)),
    ]

    payload = reports.application_status("AppOne", records, NOW)

    assert payload["current_status"] == "Running"
    assert payload["is_running"] is True
    assert payload["active_deployments"] == 1
    assert payload["message"] == "The application is being deployed to Homologation (in progress for 00:03:00)"
    assert len(payload["recent_history"]) == 2

    missing = reports.application_status("Ghost", [], NOW)
    assert missing["success"] is True
    assert "No deployments found" in missing["message"]


def test_search_results_are_capped() -> None:
    records = [_record(f"Plan {index}", "Production", "Finished") for index in range(5)]

    payload = reports.search_results("plan", records, 2)

    assert payload["total_found"] == 5
    assert payload["results_returned"] == 2
    assert payload["message"] == "Found 5 results, showing first 2"


def test_statistics_group_by_environment_app_and_weekday() -> None:
    monday = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)
    records = [
        _record("Plan A", "Production", "Finished", updated=monday, duration=timedelta(minutes=10)),
        _record("Plan B", "Production", "Finished", updated=NOW, duration=timedelta(minutes=20)),
        _record("Plan C", "Homologation", "Running", app="AppTwo", updated=NOW),
        _record("Plan D", "Production", "Finished", updated=NOW - timedelta(days=60)),
    ]

    payload = reports.statistics(records, days=30, now=NOW)

    assert payload["total_deployments"] == 3
    assert payload["active_deployments"] == 1
    assert payload["successful_deployments"] == 2
    assert payload["unique_applications"] == 2
    production = payload["environment_statistics"][0]
    assert production["environment"] == "Production"
    assert production["average_duration_minutes"] == 15.0
    assert payload["top_applications"][0] == {
        "application_name": "AppOne",
        "deployment_count": 2,
        "last_deployment": NOW.isoformat(),
    }
    assert payload["daily_activity"] == [
        {"day_of_week": "Monday", "deployment_count": 1},
        {"day_of_week": "Wednesday", "deployment_count": 2},
    ]


def test_pending_deployments_lists_idle_and_failed() -> None:
    records = [
        _record("Plan A", "Production", "Finished", app="Stale", updated=NOW - timedelta(days=10)),
        _record("Plan B", "Production", "Finished", app="Fresh", updated=NOW - timedelta(days=1)),
        _record("Plan C", "Production", "Failed", app="Broken", updated=NOW - timedelta(days=2)),
    ]

    payload = reports.pending_deployments(
        "Production", records, days_since_last_deployment=7, now=NOW
    )

    assert [item["application_name"] for item in payload["pending_applications"]] == ["Stale"]
    assert payload["pending_applications"][0]["days_since_last_deployment"] == 10
    assert [item["application_name"] for item in payload["failed_deployments"]] == ["Broken"]
    assert payload["total_pending"] == 1
    assert payload["total_failed"] == 1
