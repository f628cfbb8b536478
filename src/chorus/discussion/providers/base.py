"""
Base Backend Implementation.

Provides common functionality for all backend protocols.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..domain.entities import GenerationParams
from ..domain.ports import IChatBackend

logger = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """Configuration for a backend protocol client.

    Attributes:
        base_url: Endpoint base URL (protocol default if None)
        api_key: API key, if the endpoint needs one
        timeout: Request timeout in seconds
        extra: Protocol-specific settings
    """

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 120.0
    extra: dict[str, Any] = field(default_factory=dict)


class BaseChatBackend(IChatBackend, ABC):
    """Base class for backend protocol implementations.

    Subclasses implement `generate` for one wire protocol.
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()

    def _format_messages_for_api(
        self, messages: list[dict[str, str]]
    ) -> list[dict[str, str]]:
        """Keep only role/content pairs with string content.

        Subclasses may override for provider-specific formatting.
        """
        return [
            {"role": msg["role"], "content": str(msg.get("content") or "")}
            for msg in messages
            if msg.get("role")
        ]

    @staticmethod
    def _preview(text: str, length: int = 60) -> str:
        return text[:length].replace("\n", " ")

    @abstractmethod
    async def generate(
        self,
        model: str,
        messages: list[dict[str, str]],
        params: GenerationParams,
    ) -> str:
        """Generate a reply. Must be implemented by subclasses."""
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
