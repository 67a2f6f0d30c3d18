"""Serialized refresh cycle: authenticate, extract, reconcile."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..extraction.listing import ListingExtractor
from ..session.manager import AuthResult, SessionManager
from ..storage.sqlite import DeploymentStore, PersistenceError
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RefreshResult:
    success: bool
    message: str
    added_count: int = 0
    updated_count: int = 0
    transitions: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return self.added_count + self.updated_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "added_count": self.added_count,
            "updated_count": self.updated_count,
            "total_count": self.total_count,
            "transitions": [
                {"plan_name": plan_name, "deployed_to": deployed_to}
                for plan_name, deployed_to in self.transitions
            ],
        }


class RefreshCoordinator:
    """Run refresh cycles one at a time against the shared browser session."""

    def __init__(
        self,
        session: SessionManager,
        extractor: ListingExtractor,
        reconciler: Reconciler,
        store: DeploymentStore,
    ) -> None:
        self._session = session
        self._extractor = extractor
        self._reconciler = reconciler
        self._store = store
        self._lock = asyncio.Lock()
        self._last_result: RefreshResult | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def last_result(self) -> RefreshResult | None:
        return self._last_result

    async def refresh_cycle(self) -> RefreshResult:
        """Pull the listing once and merge it into the store.

        Authentication and extraction problems produce a failed result.
        :class:`PersistenceError` propagates to the caller.
        """

        async with self._lock:
            result = await self._run_cycle()
            self._last_result = result
            return result

    async def _run_cycle(self) -> RefreshResult:
        logger.info("Refresh cycle started")
        auth = await self._session.ensure_authenticated()
        if not auth.ok:
            return RefreshResult(
                success=False,
                message=f"Could not authenticate with the console: {auth.message}",
            )

        extraction = await self._extractor.extract(self._session.page)
        if not extraction.ok:
            return RefreshResult(
                success=False,
                message=f"Could not read deployment listing: {extraction.error.message}",
            )
        if not extraction.snapshots:
            logger.info("Refresh cycle finished with an empty listing")
            return RefreshResult(success=True, message="No deployment plans listed")

        try:
            summary = self._reconciler.reconcile(extraction.snapshots, self._store)
        except PersistenceError:
            logger.exception("Refresh cycle aborted by a storage failure")
            raise

        logger.info(
            "Refresh cycle finished",
            extra={
                "added": summary.added,
                "updated": summary.updated,
                "transitions": len(summary.transitions),
            },
        )
        return RefreshResult(
            success=True,
            message=f"Update completed. New: {summary.added}, Updated: {summary.updated}",
            added_count=summary.added,
            updated_count=summary.updated,
            transitions=list(summary.transitions),
        )

    async def check_connection(self) -> AuthResult:
        """Authenticate without extracting, serialized with refresh cycles."""

        async with self._lock:
            return await self._session.ensure_authenticated()


__all__ = ["RefreshCoordinator", "RefreshResult"]
