"""
OpenAI-compatible Backend.

Implements the IChatBackend interface with the official `openai` SDK.
Works against api.openai.com or any OpenAI-compatible server
(llama.cpp, vLLM, LM Studio) through `base_url`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from ...core.exceptions import (
    BackendConnectionError,
    BackendEmptyResponseError,
    BackendHTTPError,
    BackendTimeoutError,
)
from ..domain.entities import GenerationParams
from .base import BackendConfig, BaseChatBackend

logger = logging.getLogger(__name__)


class OpenAIBackend(BaseChatBackend):
    """OpenAI chat-completions backend.

    SDK-level retries are disabled; the invoker owns the retry policy.

    Usage:
        backend = OpenAIBackend(BackendConfig(api_key="sk-..."))
        reply = await backend.generate("gpt-4o-mini", messages, params)
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(config)

        self.client = client or AsyncOpenAI(
            api_key=self.config.api_key or "not-needed",
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=0,
        )

    @property
    def protocol_name(self) -> str:
        return "openai"

    def _build_request(
        self, model: str, messages: list[dict[str, str]], params: GenerationParams
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": model,
            "messages": self._format_messages_for_api(messages),
            "temperature": params.temperature,
            "top_p": params.top_p,
            "presence_penalty": params.presence_penalty,
            "frequency_penalty": params.frequency_penalty,
            "max_tokens": params.max_tokens,
        }
        # Ollama-only knobs (mirostat, num_ctx, ...) have no OpenAI equivalent
        if "seed" in params.extra and params.extra["seed"] is not None and params.extra["seed"] >= 0:
            request["seed"] = params.extra["seed"]
        return {k: v for k, v in request.items() if v is not None}

    async def generate(
        self,
        model: str,
        messages: list[dict[str, str]],
        params: GenerationParams,
    ) -> str:
        """Generate a reply with chat completions.

        Args:
            model: Model name
            messages: Role-tagged messages
            params: Generation parameters

        Returns:
            Stripped reply text
        """
        try:
            response = await self.client.chat.completions.create(
                **self._build_request(model, messages, params)
            )

        except openai.APIStatusError as e:
            raise BackendHTTPError(
                f"OpenAI API error: HTTP {e.status_code} - {e.message}",
                status_code=e.status_code,
                model=model,
                cause=e,
            )

        except openai.APITimeoutError as e:
            raise BackendTimeoutError(
                f"OpenAI request timeout: {str(e)}",
                model=model,
                cause=e,
            )

        except openai.APIConnectionError as e:
            raise BackendConnectionError(
                f"OpenAI connection error: {str(e)}",
                model=model,
                cause=e,
            )

        if not response.choices:
            raise BackendEmptyResponseError("No choices returned", model=model)

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise BackendEmptyResponseError(model=model)

        logger.debug(f"OpenAI {model} replied: {self._preview(content)}...")
        return content

    async def close(self) -> None:
        await self.client.close()
