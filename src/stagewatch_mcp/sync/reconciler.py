"""Merge extraction snapshots into persisted deployment history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol

from ..classification import is_running
from ..extraction.models import DeploymentSnapshot
from ..storage.models import DeploymentRecord

logger = logging.getLogger(__name__)


class StoreProtocol(Protocol):
    """Minimal store surface the reconciler writes through."""

    def find_by_key(self, plan_name: str, deployed_to: str) -> DeploymentRecord | None:
        ...

    def upsert(self, record: DeploymentRecord) -> DeploymentRecord:
        ...


@dataclass(slots=True)
class MergeSummary:
    added: int = 0
    updated: int = 0
    transitions: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.added + self.updated


class Reconciler:
    """Apply snapshots to stored records and detect status transitions.

    A transition is any change of the raw status string. Classification only
    decides the timing side effects: entering a running status stamps
    ``start_time``; moving from running to finished stamps ``end_time`` and,
    when a start exists, ``duration``. Every timestamp written for a record
    is the ``observed_at`` of the snapshot being applied.
    """

    def reconcile(
        self,
        snapshots: Iterable[DeploymentSnapshot],
        store: StoreProtocol,
    ) -> MergeSummary:
        summary = MergeSummary()
        for snapshot in snapshots:
            existing = store.find_by_key(snapshot.plan_name, snapshot.deployed_to)
            now = snapshot.observed_at
            if existing is None:
                store.upsert(self._new_record(snapshot, now))
                summary.added += 1
                logger.info(
                    "New deployment plan saved",
                    extra={"plan_name": snapshot.plan_name, "deployed_to": snapshot.deployed_to},
                )
                continue

            if self._apply(existing, snapshot, now):
                summary.transitions.append(existing.key)
            store.upsert(existing)
            summary.updated += 1
        return summary

    @staticmethod
    def _new_record(snapshot: DeploymentSnapshot, now: datetime) -> DeploymentRecord:
        return DeploymentRecord(
            plan_name=snapshot.plan_name,
            deployed_to=snapshot.deployed_to,
            status=snapshot.status,
            details=snapshot.details,
            processed_details=snapshot.processed_details,
            notes=snapshot.notes,
            first_detected=now,
            last_updated=now,
        )

    @staticmethod
    def _apply(record: DeploymentRecord, snapshot: DeploymentSnapshot, now: datetime) -> bool:
        """Update ``record`` in place; return True when the status changed."""

        changed = record.status != snapshot.status
        if changed:
            was_running = is_running(record.status)
            is_now_running = snapshot.is_running
            is_now_finished = snapshot.is_finished

            record.previous_status = record.status
            record.has_status_changed = True
            record.notification_sent = False

            if was_running and is_now_finished:
                record.end_time = now
                if record.start_time is not None:
                    record.duration = now - record.start_time
            if not was_running and is_now_running:
                record.start_time = now

            logger.info(
                "Status change detected",
                extra={
                    "plan_name": record.plan_name,
                    "deployed_to": record.deployed_to,
                    "old_status": record.status,
                    "new_status": snapshot.status,
                },
            )

        record.status = snapshot.status
        record.details = snapshot.details
        record.processed_details = snapshot.processed_details
        record.notes = snapshot.notes
        record.last_updated = now
        return changed

    def acknowledge_notification(
        self,
        store: StoreProtocol,
        plan_name: str,
        deployed_to: str,
    ) -> DeploymentRecord | None:
        """Mark the pending transition of a record as notified."""

        record = store.find_by_key(plan_name, deployed_to)
        if record is None:
            logger.warning(
                "Cannot acknowledge unknown deployment",
                extra={"plan_name": plan_name, "deployed_to": deployed_to},
            )
            return None
        record.notification_sent = True
        record.has_status_changed = False
        return store.upsert(record)


__all__ = ["MergeSummary", "Reconciler", "StoreProtocol"]
