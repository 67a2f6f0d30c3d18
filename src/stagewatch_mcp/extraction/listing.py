"""Parse the console's deployment listing table into snapshots."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..classification import MULTIPLE_APPLICATIONS
from .models import DeploymentSnapshot

logger = logging.getLogger(__name__)

TABLE_SELECTOR = "table.table"
ROW_SELECTOR = "table.table tr:not(.table-header)"
CELL_SELECTOR = "td"
MIN_CELLS = 4

_DETAIL_SEPARATORS = re.compile(r"[ ,]")
_LINE_BREAKS = re.compile(r"[\r\n]")


class ExtractionError(RuntimeError):
    """Raised when the listing table cannot be reached or read."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class RowParseError(ValueError):
    """Raised for a single listing row that cannot be turned into a snapshot."""

    def __init__(self, message: str, *, row_index: int | None = None) -> None:
        super().__init__(message)
        self.row_index = row_index


@dataclass(slots=True)
class ExtractionResult:
    """Snapshots from one extraction, or the reason there are none."""

    snapshots: list[DeploymentSnapshot] = field(default_factory=list)
    error: ExtractionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def clean_status(status: str) -> str:
    """Keep only the status label, dropping the timestamp lines rendered below it."""

    if not status:
        return status
    lines = [line for line in _LINE_BREAKS.split(status) if line]
    if lines:
        return lines[0].strip()
    return status


def process_details(details: str) -> str:
    """Derive the application label from the raw details cell."""

    if not details:
        return details
    parts = [part for part in _DETAIL_SEPARATORS.split(details) if part]
    if not parts:
        return details
    if len(parts) == 1:
        return parts[0]
    return MULTIPLE_APPLICATIONS


def parse_row(
    cells: Sequence[str | None],
    observed_at: datetime,
    *,
    row_index: int | None = None,
) -> DeploymentSnapshot | None:
    """Build a snapshot from the text of one row's cells.

    Returns None for rows without a plan name or environment.
    """

    if len(cells) < MIN_CELLS:
        raise RowParseError(
            f"Expected at least {MIN_CELLS} cells, got {len(cells)}", row_index=row_index
        )

    plan_name, deployed_to, status, details = ((cell or "").strip() for cell in cells[:MIN_CELLS])
    if not plan_name or not deployed_to:
        return None

    return DeploymentSnapshot(
        plan_name=plan_name,
        deployed_to=deployed_to,
        status=clean_status(status),
        details=details,
        processed_details=process_details(details),
        observed_at=observed_at,
    )


class ListingExtractor:
    """Read deployment snapshots from the listing page of an authenticated session."""

    def __init__(
        self,
        listing_url: str,
        *,
        table_timeout_ms: int = 30_000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._listing_url = listing_url
        self._table_timeout_ms = table_timeout_ms
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _failure(self, reason: str, message: str) -> ExtractionResult:
        logger.error("Listing extraction failed", extra={"reason": reason, "detail": message})
        return ExtractionResult(error=ExtractionError(reason, message))

    async def extract(self, page: Page | None) -> ExtractionResult:
        if page is None:
            return self._failure("no-session", "No browser session is available")

        logger.info("Starting deployment listing extraction")
        try:
            await page.goto(self._listing_url)
            await page.wait_for_load_state("networkidle")
        except PlaywrightError as exc:
            return self._failure("navigation", f"Could not load listing page: {exc}")

        try:
            await page.wait_for_selector(TABLE_SELECTOR, timeout=self._table_timeout_ms)
        except PlaywrightTimeoutError:
            return self._failure(
                "table-timeout",
                f"Listing table did not appear within {self._table_timeout_ms} ms",
            )
        except PlaywrightError as exc:
            return self._failure("table-timeout", f"Error waiting for listing table: {exc}")

        observed_at = self._clock()
        try:
            rows = await page.query_selector_all(ROW_SELECTOR)
        except PlaywrightError as exc:
            return self._failure("rows", f"Could not read listing rows: {exc}")

        snapshots: list[DeploymentSnapshot] = []
        for index, row in enumerate(rows):
            try:
                cells = await row.query_selector_all(CELL_SELECTOR)
                if len(cells) < MIN_CELLS:
                    logger.debug("Skipping short row", extra={"row_index": index, "cells": len(cells)})
                    continue
                texts = [await cell.text_content() for cell in cells[:MIN_CELLS]]
                snapshot = parse_row(texts, observed_at, row_index=index)
            except RowParseError as exc:
                logger.warning("Error processing table row", extra={"row_index": index, "error": str(exc)})
                continue
            except PlaywrightError as exc:
                error = RowParseError(str(exc), row_index=index)
                logger.warning("Error processing table row", extra={"row_index": index, "error": str(error)})
                continue

            if snapshot is not None:
                snapshots.append(snapshot)

        logger.info("Extraction completed", extra={"count": len(snapshots)})
        return ExtractionResult(snapshots=snapshots)


__all__ = [
    "CELL_SELECTOR",
    "ExtractionError",
    "ExtractionResult",
    "ListingExtractor",
    "ROW_SELECTOR",
    "RowParseError",
    "TABLE_SELECTOR",
    "clean_status",
    "parse_row",
    "process_details",
]
