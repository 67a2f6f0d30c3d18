"""Listing extraction for the deployment console."""

from .listing import (
    ExtractionError,
    ExtractionResult,
    ListingExtractor,
    RowParseError,
    clean_status,
    parse_row,
    process_details,
)
from .models import DeploymentSnapshot

__all__ = [
    "DeploymentSnapshot",
    "ExtractionError",
    "ExtractionResult",
    "ListingExtractor",
    "RowParseError",
    "clean_status",
    "parse_row",
    "process_details",
]
