"""
Port interfaces (abstract base classes) for the discussion module.

These define the contracts that adapters must implement.
Following the Ports & Adapters (Hexagonal) architecture pattern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .entities import GenerationParams, RecentDocument, Turn, TurnRole


# ============================================
# Backend Protocol Interface
# ============================================


class IChatBackend(ABC):
    """Interface for a model backend protocol (Ollama, OpenAI-compatible).

    Implementations make exactly one network call per `generate` and
    raise BackendProtocolError subclasses on failure; they never retry.
    """

    @property
    @abstractmethod
    def protocol_name(self) -> str:
        """Return the protocol identifier (e.g., 'ollama')."""
        pass

    @abstractmethod
    async def generate(
        self,
        model: str,
        messages: list[dict[str, str]],
        params: GenerationParams,
    ) -> str:
        """Generate one reply.

        Args:
            model: Backend model name
            messages: Role-tagged messages, system message first
            params: Generation parameters

        Returns:
            Stripped reply text

        Raises:
            BackendHTTPError: Non-success status
            BackendEmptyResponseError: Response without content
            BackendConnectionError: Endpoint unreachable
            BackendTimeoutError: Request timed out
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass


# ============================================
# Turn Store Interface
# ============================================


class ITurnStore(ABC):
    """Interface for the persisted conversation log.

    Appends are independent rows; implementations must tolerate
    concurrent use by several sessions. All failures surface as
    PersistenceError.
    """

    async def initialize(self) -> None:
        """Create tables or other resources if needed."""
        pass

    async def close(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    async def append_turn(
        self, role: TurnRole, content: str, provider_id: Optional[str]
    ) -> int:
        """Append a turn and return its id."""
        pass

    @abstractmethod
    async def list_turns(self) -> list[Turn]:
        """All turns ordered by time (oldest first)."""
        pass

    @abstractmethod
    async def recent_turns(
        self, limit: int, roles: Optional[tuple[TurnRole, ...]] = None
    ) -> list[Turn]:
        """Most recent turns, newest first, optionally filtered by role."""
        pass

    @abstractmethod
    async def recent_documents(self, limit: int) -> list[RecentDocument]:
        """Most recent documents, newest first."""
        pass

    @abstractmethod
    async def list_documents(self) -> list[dict[str, Any]]:
        """Document metadata, newest first."""
        pass

    @abstractmethod
    async def create_project(
        self, name: str, description: Optional[str], requirements: Optional[str]
    ) -> int:
        """Create a project and return its id."""
        pass

    @abstractmethod
    async def list_projects(self) -> list[dict[str, Any]]:
        """Projects, newest first."""
        pass
