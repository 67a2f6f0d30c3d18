"""Utility helpers for session diagnostics."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

ARTIFACT_EXTENSION = "png"
_LOGIN_MARKERS = ("login", "signin")


def artifact_path(directory: Path, kind: str, when: datetime) -> Path:
    """Return ``<directory>/<kind>-<yyyyMMdd-HHmmss>.png``."""

    return Path(directory) / f"{kind}-{when.strftime('%Y%m%d-%H%M%S')}.{ARTIFACT_EXTENSION}"


def is_login_url(url: str | None) -> bool:
    """Return True when ``url`` points at a login or sign-in page."""

    lowered = (url or "").lower()
    return any(marker in lowered for marker in _LOGIN_MARKERS)
