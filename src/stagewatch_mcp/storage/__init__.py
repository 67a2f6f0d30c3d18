"""Storage abstractions for Stagewatch MCP."""

from .models import DeploymentRecord, format_duration
from .sqlite import DeploymentStore, PersistenceError

__all__ = [
    "DeploymentRecord",
    "DeploymentStore",
    "PersistenceError",
    "format_duration",
]
