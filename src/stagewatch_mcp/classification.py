"""Status and environment classification shared by merge, storage and reports.

Every predicate is a case-insensitive substring test on the raw label. Callers
must go through these helpers so that the running/finished view of a record is
the same whether it is computed during a merge, a store query or a report.
"""

from __future__ import annotations

RUNNING_LABEL = "running"
FINISHED_LABELS = ("finished", "successfully")
HOMOLOGATION_LABEL = "homologation"
PRODUCTION_LABEL = "production"

MULTIPLE_APPLICATIONS = "Multiple applications"


def contains_label(text: str | None, label: str | None) -> bool:
    """Return True when ``label`` occurs in ``text`` ignoring case.

    An empty label matches everything.
    """

    if not label:
        return True
    return label.lower() in (text or "").lower()


def is_running(status: str | None) -> bool:
    return contains_label(status, RUNNING_LABEL)


def is_finished(status: str | None) -> bool:
    return any(contains_label(status, label) for label in FINISHED_LABELS)


def is_homologation(deployed_to: str | None) -> bool:
    return contains_label(deployed_to, HOMOLOGATION_LABEL)


def is_production(deployed_to: str | None) -> bool:
    return contains_label(deployed_to, PRODUCTION_LABEL)


def environment_label(deployed_to: str) -> str:
    """Return the canonical environment name used in user-facing messages."""

    if is_homologation(deployed_to):
        return "Homologation"
    if is_production(deployed_to):
        return "Production"
    return deployed_to


__all__ = [
    "FINISHED_LABELS",
    "HOMOLOGATION_LABEL",
    "MULTIPLE_APPLICATIONS",
    "PRODUCTION_LABEL",
    "RUNNING_LABEL",
    "contains_label",
    "environment_label",
    "is_finished",
    "is_homologation",
    "is_production",
    "is_running",
]
