"""
Ollama Backend.

Implements the IChatBackend interface for Ollama's local chat API
(`POST /api/chat`, non-streaming).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ...core.exceptions import (
    BackendConnectionError,
    BackendEmptyResponseError,
    BackendHTTPError,
    BackendProtocolError,
    BackendTimeoutError,
)
from ..domain.entities import GenerationParams
from .base import BackendConfig, BaseChatBackend

logger = logging.getLogger(__name__)


class OllamaBackend(BaseChatBackend):
    """Ollama local model backend.

    Usage:
        backend = OllamaBackend(BackendConfig(base_url="http://localhost:11434"))

        reply = await backend.generate(
            "mistral:7b",
            [{"role": "user", "content": "Hello"}],
            GenerationParams(),
        )
    """

    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the Ollama backend.

        Args:
            config: Backend configuration
            client: Pre-built HTTP client (tests inject a mock)
        """
        super().__init__(config)

        self.base_url = self.config.base_url or self.DEFAULT_BASE_URL
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout,
        )

    @property
    def protocol_name(self) -> str:
        return "ollama"

    def _build_options(self, params: GenerationParams) -> dict[str, Any]:
        """Map generation parameters to Ollama `options`."""
        options: dict[str, Any] = {
            "temperature": params.temperature,
            "top_p": params.top_p,
            "top_k": params.top_k,
            "repeat_penalty": params.repeat_penalty,
            "presence_penalty": params.presence_penalty,
            "frequency_penalty": params.frequency_penalty,
            "num_ctx": params.num_ctx,
            "num_predict": params.max_tokens,
        }
        options = {k: v for k, v in options.items() if v is not None}
        options.update(params.extra)
        return options

    async def generate(
        self,
        model: str,
        messages: list[dict[str, str]],
        params: GenerationParams,
    ) -> str:
        """Generate a reply using Ollama.

        Args:
            model: Ollama model tag (e.g., 'mistral:7b')
            messages: Role-tagged messages
            params: Generation parameters

        Returns:
            Stripped reply text
        """
        payload = {
            "model": model,
            "messages": self._format_messages_for_api(messages),
            "stream": False,
            "options": self._build_options(params),
        }

        try:
            response = await self.client.post("/api/chat", json=payload)
            response.raise_for_status()

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise BackendHTTPError(
                f"Ollama API error: HTTP {status_code} - {e.response.reason_phrase}",
                status_code=status_code,
                model=model,
                cause=e,
            )

        except httpx.TimeoutException as e:
            raise BackendTimeoutError(
                f"Ollama request timeout: {str(e)}",
                model=model,
                cause=e,
            )

        except httpx.RequestError as e:
            raise BackendConnectionError(
                f"Ollama connection error: {str(e)}",
                model=model,
                cause=e,
            )

        if not response.content:
            raise BackendEmptyResponseError("Empty body from Ollama", model=model)

        try:
            data = response.json()
        except ValueError as e:
            raise BackendProtocolError(
                f"Failed to parse Ollama response: {e}",
                model=model,
                cause=e,
            )

        content = ((data.get("message") or {}).get("content") or "").strip()
        if not content:
            raise BackendEmptyResponseError(model=model)

        logger.debug(f"Ollama {model} replied: {self._preview(content)}...")
        return content

    async def close(self) -> None:
        await self.client.aclose()
