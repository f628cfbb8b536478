"""Turn store adapters."""

from .turn_store import InMemoryTurnStore, PostgresTurnStore, create_pool

__all__ = [
    "InMemoryTurnStore",
    "PostgresTurnStore",
    "create_pool",
]
