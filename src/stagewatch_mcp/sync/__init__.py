"""Reconciliation and refresh orchestration."""

from .cycle import RefreshCoordinator, RefreshResult
from .monitor import run_monitor
from .reconciler import MergeSummary, Reconciler

__all__ = [
    "MergeSummary",
    "Reconciler",
    "RefreshCoordinator",
    "RefreshResult",
    "run_monitor",
]
