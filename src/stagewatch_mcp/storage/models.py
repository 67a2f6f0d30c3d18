"""Data models for persistent deployment tracking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..classification import (
    MULTIPLE_APPLICATIONS,
    environment_label,
    is_finished,
    is_homologation,
    is_production,
    is_running,
)


def format_duration(value: timedelta | None) -> str | None:
    """Render an elapsed interval as ``HH:MM:SS``."""

    if value is None:
        return None
    total = max(int(value.total_seconds()), 0)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(slots=True)
class DeploymentRecord:
    """Persisted history of one (plan, environment) deployment thread."""

    plan_name: str
    deployed_to: str
    status: str
    details: str
    processed_details: str
    first_detected: datetime
    last_updated: datetime
    previous_status: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: timedelta | None = None
    has_status_changed: bool = False
    notification_sent: bool = False
    notes: str | None = None
    id: int | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.plan_name, self.deployed_to)

    @property
    def is_running(self) -> bool:
        return is_running(self.status)

    @property
    def is_finished(self) -> bool:
        return is_finished(self.status)

    @property
    def is_homologation(self) -> bool:
        return is_homologation(self.deployed_to)

    @property
    def is_production(self) -> bool:
        return is_production(self.deployed_to)

    @property
    def is_multiple_applications(self) -> bool:
        return self.processed_details == MULTIPLE_APPLICATIONS

    def notification_message(self) -> str:
        """Describe the current state of the deployment for a human reader."""

        plural = self.is_multiple_applications
        if self.is_running:
            action = "are deploying" if plural else "is deploying"
        elif self.is_finished:
            action = "have finished" if plural else "has finished"
        else:
            action = "are in process" if plural else "is in process"
        article = "their deployments" if plural else "its deployment"

        suffix = ""
        if self.duration is not None:
            suffix = f" (Duration: {format_duration(self.duration)})"

        environment = environment_label(self.deployed_to)
        return f"{self.processed_details} {action} {article} to {environment}{suffix}"


__all__ = ["DeploymentRecord", "format_duration"]
