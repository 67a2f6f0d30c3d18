"""Periodic driver for refresh cycles."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..storage.sqlite import PersistenceError
from .cycle import RefreshCoordinator

logger = logging.getLogger(__name__)


async def run_monitor(
    coordinator: RefreshCoordinator,
    interval_seconds: float,
    *,
    stop_event: asyncio.Event,
) -> int:
    """Call ``refresh_cycle`` every ``interval_seconds`` until ``stop_event`` is set.

    Returns the number of cycles attempted. A failed or crashed cycle is
    logged and retried on the next tick only.
    """

    cycles = 0
    while not stop_event.is_set():
        cycles += 1
        try:
            result = await coordinator.refresh_cycle()
        except PersistenceError:
            logger.exception("Monitor tick failed on storage", extra={"cycle": cycles})
        except Exception:
            logger.exception("Monitor tick failed unexpectedly", extra={"cycle": cycles})
        else:
            if not result.success:
                logger.warning("Monitor tick failed", extra={"cycle": cycles, "reason": result.message})

        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
    logger.info("Monitor stopped", extra={"cycles": cycles})
    return cycles


__all__ = ["run_monitor"]
