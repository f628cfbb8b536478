"""Shared fixtures for discussion tests."""

from typing import Any, Callable, Union

import pytest

from src.chorus.core.resilience import RetryPolicy
from src.chorus.discussion.domain.entities import BackendProtocol, GenerationParams
from src.chorus.discussion.domain.ports import IChatBackend
from src.chorus.discussion.memory.turn_store import InMemoryTurnStore
from src.chorus.discussion.providers.invoker import BackendInvoker
from src.chorus.discussion.providers.registry import ProviderRegistry

Reply = Union[str, Exception, Callable[[list[dict[str, str]]], str]]

DEFAULT_REPLY = "That is a genuinely interesting angle on the question."


class ScriptedBackend(IChatBackend):
    """Backend that replays scripted replies per model and records calls.

    A script entry may be a string, an exception to raise, or a callable
    receiving the messages. Models without (remaining) script entries get
    `default`.
    """

    def __init__(self, script: dict[str, list[Reply]] = None, default: Reply = DEFAULT_REPLY):
        self.script = {model: list(replies) for model, replies in (script or {}).items()}
        self.default = default
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    @property
    def protocol_name(self) -> str:
        return "scripted"

    def calls_for(self, model: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["model"] == model]

    async def generate(
        self, model: str, messages: list[dict[str, str]], params: GenerationParams
    ) -> str:
        self.calls.append({"model": model, "messages": messages, "params": params})
        queue = self.script.get(model)
        reply = queue.pop(0) if queue else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(messages)
        return reply

    async def close(self) -> None:
        self.closed = True


class FakeSleep:
    """Records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def registry():
    return ProviderRegistry.default()


@pytest.fixture
def make_backend():
    """Build a ScriptedBackend: make_backend({"mistral:7b": ["", "", ""]})."""
    return ScriptedBackend


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def store():
    return InMemoryTurnStore()


@pytest.fixture
def make_invoker(registry, fake_sleep):
    """Build an invoker around a given backend."""

    def factory(backend: IChatBackend, **kwargs) -> BackendInvoker:
        kwargs.setdefault("policy", RetryPolicy(max_attempts=3, backoff_base=2.0))
        return BackendInvoker(
            registry=kwargs.pop("registry", registry),
            backends={BackendProtocol.OLLAMA: backend},
            sleep=fake_sleep,
            **kwargs,
        )

    return factory


@pytest.fixture
def invoker(make_invoker, backend):
    return make_invoker(backend)
