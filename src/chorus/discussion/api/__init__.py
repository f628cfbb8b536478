"""HTTP surface for the discussion orchestrator."""

from .router import clear_chorus_dependencies, create_chorus_dependencies, router

__all__ = [
    "clear_chorus_dependencies",
    "create_chorus_dependencies",
    "router",
]
