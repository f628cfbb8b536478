"""
Unit tests for the Ollama backend.

Uses httpx.MockTransport so requests go through a real AsyncClient.
"""

import json

import httpx
import pytest

from src.chorus.core.exceptions import (
    BackendConnectionError,
    BackendEmptyResponseError,
    BackendHTTPError,
    BackendProtocolError,
    BackendTimeoutError,
)
from src.chorus.discussion.domain.entities import GenerationParams
from src.chorus.discussion.providers.base import BackendConfig
from src.chorus.discussion.providers.ollama import OllamaBackend
from src.chorus.discussion.providers.registry import OLLAMA_DISCUSSION_PARAMS

MESSAGES = [
    {"role": "system", "content": "Be helpful."},
    {"role": "user", "content": "Hello"},
]


def make_backend(handler) -> OllamaBackend:
    client = httpx.AsyncClient(
        base_url="http://ollama.test",
        transport=httpx.MockTransport(handler),
    )
    return OllamaBackend(BackendConfig(base_url="http://ollama.test"), client=client)


def chat_reply(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={"model": "mistral:7b", "message": {"role": "assistant", "content": content}, "done": True},
    )


class TestOllamaBackendInit:
    """Tests for backend construction."""

    def test_default_base_url(self):
        backend = OllamaBackend()
        assert backend.base_url == OllamaBackend.DEFAULT_BASE_URL
        assert backend.protocol_name == "ollama"

    def test_custom_base_url(self):
        backend = OllamaBackend(BackendConfig(base_url="http://gpu-box:11434"))
        assert backend.base_url == "http://gpu-box:11434"


class TestOllamaGenerate:
    """Tests for the chat call."""

    @pytest.mark.asyncio
    async def test_request_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return chat_reply("  Hello there, nice to meet you.  ")

        backend = make_backend(handler)
        reply = await backend.generate("mistral:7b", MESSAGES, OLLAMA_DISCUSSION_PARAMS)

        assert reply == "Hello there, nice to meet you."
        assert captured["path"] == "/api/chat"

        body = captured["body"]
        assert body["model"] == "mistral:7b"
        assert body["stream"] is False
        assert body["messages"] == MESSAGES

        options = body["options"]
        assert options["temperature"] == 0.8
        assert options["num_ctx"] == 4096
        assert options["num_predict"] == 400
        assert options["mirostat"] == 2
        assert options["repeat_penalty"] == 1.1

    @pytest.mark.asyncio
    async def test_none_options_omitted(self):
        captured = {}

        def handler(request):
            captured["options"] = json.loads(request.content)["options"]
            return chat_reply("A perfectly fine reply.")

        params = GenerationParams(temperature=0.9, top_p=0.95, top_k=None, repeat_penalty=None, num_ctx=None, max_tokens=350)
        await make_backend(handler).generate("mistral:7b", MESSAGES, params)

        assert "top_k" not in captured["options"]
        assert "num_ctx" not in captured["options"]
        assert captured["options"]["num_predict"] == 350

    @pytest.mark.asyncio
    async def test_http_error(self):
        backend = make_backend(lambda request: httpx.Response(500, text="model crashed"))

        with pytest.raises(BackendHTTPError) as exc_info:
            await backend.generate("mistral:7b", MESSAGES, GenerationParams())

        assert exc_info.value.status_code == 500
        assert "HTTP 500" in str(exc_info.value)
        assert exc_info.value.model == "mistral:7b"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(BackendTimeoutError):
            await make_backend(handler).generate("mistral:7b", MESSAGES, GenerationParams())

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendConnectionError):
            await make_backend(handler).generate("mistral:7b", MESSAGES, GenerationParams())

    @pytest.mark.asyncio
    async def test_empty_body(self):
        backend = make_backend(lambda request: httpx.Response(200, content=b""))

        with pytest.raises(BackendEmptyResponseError):
            await backend.generate("mistral:7b", MESSAGES, GenerationParams())

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        backend = make_backend(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(BackendProtocolError, match="Failed to parse"):
            await backend.generate("mistral:7b", MESSAGES, GenerationParams())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", None])
    async def test_empty_message_content(self, content):
        backend = make_backend(
            lambda request: httpx.Response(200, json={"message": {"role": "assistant", "content": content}})
        )

        with pytest.raises(BackendEmptyResponseError):
            await backend.generate("mistral:7b", MESSAGES, GenerationParams())

    @pytest.mark.asyncio
    async def test_close(self):
        backend = make_backend(lambda request: chat_reply("unused"))
        await backend.close()
        assert backend.client.is_closed
