"""
Provider Registry.

Immutable catalog of selectable model backends. Built once at startup
(default catalog or a JSON file) and shared read-only by every session.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Optional, Union

from ...core.exceptions import ProviderNotFoundError, ValidationError
from ..domain.entities import (
    BackendProtocol,
    GenerationParams,
    ProviderDescriptor,
    Reliability,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPERTISE = "General development support"

# Ollama sampling tuned for open-ended discussion
OLLAMA_DISCUSSION_PARAMS = GenerationParams(
    temperature=0.8,
    top_p=0.9,
    top_k=40,
    repeat_penalty=1.1,
    presence_penalty=0.0,
    frequency_penalty=0.0,
    num_ctx=4096,
    max_tokens=400,
    extra={
        "mirostat": 2,
        "mirostat_eta": 0.1,
        "mirostat_tau": 5.0,
        "stop": [],
        "seed": -1,
        "tfs_z": 1.0,
        "typical_p": 1.0,
        "min_p": 0.0,
    },
)

DEFAULT_PROVIDERS: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        id="mistral:7b",
        name="Mistral 7B",
        description="Advanced reasoning, philosophy, and analysis",
        color="#7c3aed",
        reliability=Reliability.HIGH,
        protocol=BackendProtocol.OLLAMA,
        expertise="System architecture, logic design, performance optimization",
        params=OLLAMA_DISCUSSION_PARAMS,
    ),
    ProviderDescriptor(
        id="codellama:7b",
        name="CodeLlama 7B",
        description="Programming, technical analysis, and logic",
        color="#059669",
        reliability=Reliability.HIGH,
        protocol=BackendProtocol.OLLAMA,
        expertise="Code implementation, debugging, syntax optimization",
        params=OLLAMA_DISCUSSION_PARAMS,
    ),
    ProviderDescriptor(
        id="llama3.2:3b",
        name="Llama 3.2 3B",
        description="Creative thinking and diverse perspectives",
        color="#3b82f6",
        reliability=Reliability.MEDIUM,
        protocol=BackendProtocol.OLLAMA,
        expertise="Project management, documentation, testing strategies",
        params=OLLAMA_DISCUSSION_PARAMS,
    ),
    ProviderDescriptor(
        id="llama3.2:1b",
        name="Llama 3.2 1B",
        description="Quick insights and alternative viewpoints",
        color="#dc2626",
        reliability=Reliability.MEDIUM,
        protocol=BackendProtocol.OLLAMA,
        expertise="Quick prototyping, validation, integration testing",
        params=OLLAMA_DISCUSSION_PARAMS,
    ),
)


class ProviderRegistry:
    """Read-only lookup of ProviderDescriptors by id.

    Usage:
        registry = ProviderRegistry.default()

        descriptor = registry.resolve("mistral:7b")
        maybe = registry.get("unknown")   # None
        reliable = registry.working()
    """

    def __init__(self, providers: Iterable[ProviderDescriptor]):
        providers = tuple(providers)
        by_id: dict[str, ProviderDescriptor] = {}
        for descriptor in providers:
            if descriptor.id in by_id:
                raise ValidationError(
                    f"Duplicate provider id: {descriptor.id}", field="id"
                )
            by_id[descriptor.id] = descriptor

        self._providers = providers
        self._by_id = MappingProxyType(by_id)

    @classmethod
    def default(cls) -> ProviderRegistry:
        """Registry with the built-in Ollama catalog."""
        return cls(DEFAULT_PROVIDERS)

    @classmethod
    def from_dicts(cls, entries: list[dict[str, Any]]) -> ProviderRegistry:
        """Build a registry from plain dictionaries (e.g. parsed JSON).

        Each entry needs `id` and `name`; `type` (or `protocol`),
        `reliability`, `expertise`, `color`, `description` and `params`
        are optional.
        """
        descriptors = []
        for entry in entries:
            if not entry.get("id") or not entry.get("name"):
                raise ValidationError("Provider entries need 'id' and 'name'", field="providers")
            try:
                protocol = BackendProtocol(entry.get("protocol") or entry.get("type") or "ollama")
                reliability = Reliability(entry.get("reliability", "medium"))
            except ValueError as e:
                raise ValidationError(f"Invalid provider entry {entry['id']}: {e}", field="providers")

            params = entry.get("params")
            descriptors.append(
                ProviderDescriptor(
                    id=entry["id"],
                    name=entry["name"],
                    description=entry.get("description", ""),
                    color=entry.get("color", "#666"),
                    reliability=reliability,
                    protocol=protocol,
                    expertise=entry.get("expertise", DEFAULT_EXPERTISE),
                    params=GenerationParams.from_dict(params) if params else OLLAMA_DISCUSSION_PARAMS,
                )
            )
        return cls(descriptors)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> ProviderRegistry:
        """Load a registry from a JSON file holding a list (or {"providers": [...]})."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        entries = data.get("providers", []) if isinstance(data, dict) else data
        registry = cls.from_dicts(entries)
        logger.info(f"Loaded {len(registry)} providers from {path}")
        return registry

    def list(self) -> list[ProviderDescriptor]:
        return list(self._providers)

    def get(self, provider_id: str) -> Optional[ProviderDescriptor]:
        return self._by_id.get(provider_id)

    def resolve(self, provider_id: str) -> ProviderDescriptor:
        """Return the descriptor or raise ProviderNotFoundError."""
        descriptor = self._by_id.get(provider_id)
        if descriptor is None:
            raise ProviderNotFoundError(provider_id)
        return descriptor

    def working(self) -> list[ProviderDescriptor]:
        """Providers in the high reliability tier."""
        return [p for p in self._providers if p.reliability == Reliability.HIGH]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._by_id

    def __len__(self) -> int:
        return len(self._providers)
