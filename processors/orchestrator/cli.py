"""CLI interface for the orchestrator."""

from __future__ import annotations

from .adapter import main

__all__ = ["main"]
