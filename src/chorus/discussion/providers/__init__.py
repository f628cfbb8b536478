"""Backend protocols, provider catalog, and the backend invoker."""

from .base import BackendConfig, BaseChatBackend
from .invoker import BackendInvoker, ResponseRules
from .ollama import OllamaBackend
from .openai import OpenAIBackend
from .registry import DEFAULT_PROVIDERS, ProviderRegistry

__all__ = [
    "BackendConfig",
    "BaseChatBackend",
    "BackendInvoker",
    "ResponseRules",
    "OllamaBackend",
    "OpenAIBackend",
    "DEFAULT_PROVIDERS",
    "ProviderRegistry",
]
