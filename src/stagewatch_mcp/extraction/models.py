"""Snapshot models produced by the listing extractor."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..classification import is_finished, is_running


@dataclass(slots=True, frozen=True)
class DeploymentSnapshot:
    """One parsed listing row, valid for a single refresh cycle."""

    plan_name: str
    deployed_to: str
    status: str
    details: str
    processed_details: str
    observed_at: datetime
    notes: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.plan_name, self.deployed_to)

    @property
    def is_running(self) -> bool:
        return is_running(self.status)

    @property
    def is_finished(self) -> bool:
        return is_finished(self.status)


__all__ = ["DeploymentSnapshot"]
