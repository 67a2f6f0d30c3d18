"""Stagewatch MCP: deployment status tracking for browser-only consoles."""

__version__ = "0.1.0"

__all__ = ["__version__"]
