"""SQLite-backed persistence for deployment records."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

from ..classification import contains_label, is_running
from .models import DeploymentRecord

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS deployments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plan_name TEXT NOT NULL,
    deployed_to TEXT NOT NULL,
    status TEXT NOT NULL,
    previous_status TEXT NOT NULL DEFAULT '',
    details TEXT NOT NULL DEFAULT '',
    processed_details TEXT NOT NULL DEFAULT '',
    start_time TEXT,
    end_time TEXT,
    duration_seconds REAL,
    first_detected TEXT NOT NULL,
    last_updated TEXT NOT NULL,
    has_status_changed INTEGER NOT NULL DEFAULT 0,
    notification_sent INTEGER NOT NULL DEFAULT 0,
    notes TEXT,
    UNIQUE (plan_name, deployed_to)
);

CREATE INDEX IF NOT EXISTS idx_deployments_last_updated ON deployments(last_updated);
CREATE INDEX IF NOT EXISTS idx_deployments_changes
    ON deployments(has_status_changed, notification_sent);
"""

UPSERT_SQL = """
INSERT INTO deployments (
    plan_name, deployed_to, status, previous_status, details, processed_details,
    start_time, end_time, duration_seconds, first_detected, last_updated,
    has_status_changed, notification_sent, notes
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (plan_name, deployed_to) DO UPDATE SET
    status = excluded.status,
    previous_status = excluded.previous_status,
    details = excluded.details,
    processed_details = excluded.processed_details,
    start_time = excluded.start_time,
    end_time = excluded.end_time,
    duration_seconds = excluded.duration_seconds,
    first_detected = excluded.first_detected,
    last_updated = excluded.last_updated,
    has_status_changed = excluded.has_status_changed,
    notification_sent = excluded.notification_sent,
    notes = excluded.notes
"""


class PersistenceError(RuntimeError):
    """Raised when the deployment store cannot complete an operation."""


def _to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # Fixed-width UTC text keeps lexical and chronological order identical.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class DeploymentStore:
    """Keyed store of deployment records with a unique (plan, environment) constraint."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        try:
            if self._path.parent and not self._path.parent.exists():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(SCHEMA_SQL)
            self._conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot open deployment store at {self._path}: {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            logger.error(
                "Deployment store operation failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise PersistenceError(f"{operation} failed: {exc}") from exc

    def _row_to_record(self, row: sqlite3.Row) -> DeploymentRecord:
        duration = row["duration_seconds"]
        return DeploymentRecord(
            id=row["id"],
            plan_name=row["plan_name"],
            deployed_to=row["deployed_to"],
            status=row["status"],
            previous_status=row["previous_status"],
            details=row["details"],
            processed_details=row["processed_details"],
            start_time=_from_db_time(row["start_time"]),
            end_time=_from_db_time(row["end_time"]),
            duration=timedelta(seconds=duration) if duration is not None else None,
            first_detected=_from_db_time(row["first_detected"]),
            last_updated=_from_db_time(row["last_updated"]),
            has_status_changed=bool(row["has_status_changed"]),
            notification_sent=bool(row["notification_sent"]),
            notes=row["notes"],
        )

    def _select(self, operation: str, where: str = "", params: tuple = ()) -> list[DeploymentRecord]:
        query = "SELECT * FROM deployments"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY last_updated DESC, id DESC"
        with self._guard(operation):
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def ping(self) -> bool:
        """Verify that the database answers queries."""

        with self._guard("ping"):
            self._conn.execute("SELECT 1").fetchone()
        return True

    def count(self) -> int:
        with self._guard("count"):
            return self._conn.execute("SELECT COUNT(*) FROM deployments").fetchone()[0]

    def find_by_key(self, plan_name: str, deployed_to: str) -> DeploymentRecord | None:
        with self._guard("find_by_key"):
            row = self._conn.execute(
                "SELECT * FROM deployments WHERE plan_name = ? AND deployed_to = ?",
                (plan_name, deployed_to),
            ).fetchone()
        return self._row_to_record(row) if row is not None else None

    def upsert(self, record: DeploymentRecord) -> DeploymentRecord:
        """Insert or update ``record`` by key in a single transaction."""

        params = (
            record.plan_name,
            record.deployed_to,
            record.status,
            record.previous_status,
            record.details,
            record.processed_details,
            _to_db_time(record.start_time),
            _to_db_time(record.end_time),
            record.duration.total_seconds() if record.duration is not None else None,
            _to_db_time(record.first_detected),
            _to_db_time(record.last_updated),
            int(record.has_status_changed),
            int(record.notification_sent),
            record.notes,
        )
        with self._guard("upsert"):
            with self._conn:
                self._conn.execute(UPSERT_SQL, params)
                row = self._conn.execute(
                    "SELECT * FROM deployments WHERE plan_name = ? AND deployed_to = ?",
                    (record.plan_name, record.deployed_to),
                ).fetchone()
        return self._row_to_record(row)

    def list_all(self) -> list[DeploymentRecord]:
        return self._select("list_all")

    def list_changed_unnotified(self) -> list[DeploymentRecord]:
        return self._select(
            "list_changed_unnotified",
            "has_status_changed = 1 AND notification_sent = 0",
        )

    def list_since(self, since: datetime) -> list[DeploymentRecord]:
        return self._select("list_since", "last_updated >= ?", (_to_db_time(since),))

    # Label filters run in Python so they share the classification match rule.

    def list_by_environment(self, environment: str | None) -> list[DeploymentRecord]:
        return [
            record
            for record in self.list_all()
            if contains_label(record.deployed_to, environment)
        ]

    def list_running(self) -> list[DeploymentRecord]:
        running = [record for record in self.list_all() if is_running(record.status)]
        with_start = [record for record in running if record.start_time is not None]
        without_start = [record for record in running if record.start_time is None]
        with_start.sort(key=lambda record: record.start_time, reverse=True)
        return with_start + without_start

    def search(self, term: str | None) -> list[DeploymentRecord]:
        """Match ``term`` across plan name, details, status and environment."""

        if term is None or not term.strip():
            return self.list_all()
        needle = term.strip()
        return [
            record
            for record in self.list_all()
            if any(
                contains_label(haystack, needle)
                for haystack in (
                    record.plan_name,
                    record.details,
                    record.processed_details,
                    record.status,
                    record.deployed_to,
                )
            )
        ]

    def close(self) -> None:
        with self._guard("close"):
            self._conn.close()


__all__ = ["DeploymentStore", "PersistenceError"]
