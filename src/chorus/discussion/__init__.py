"""
Multi-model discussion orchestration.

Drives several language-model backends through a shared, persisted
conversation, either one synchronous round at a time or as an unbounded
streamed discussion.

Usage:
    from src.chorus.discussion import (
        BackendInvoker,
        InMemoryTurnStore,
        ProviderRegistry,
        RoundOrchestrator,
    )
"""

from .domain import (
    ConversationHistory,
    Directive,
    DirectiveKind,
    ProviderDescriptor,
    RoundResponse,
    StreamEvent,
    StreamingSession,
    Turn,
    TurnRole,
)
from .memory import InMemoryTurnStore, PostgresTurnStore
from .orchestrator import (
    DirectiveClassifier,
    DiscussionConfig,
    RoundOrchestrator,
    StimulusGenerator,
    StreamingOrchestrator,
)
from .providers import (
    BackendInvoker,
    OllamaBackend,
    OpenAIBackend,
    ProviderRegistry,
)

__all__ = [
    "ConversationHistory",
    "Directive",
    "DirectiveKind",
    "ProviderDescriptor",
    "RoundResponse",
    "StreamEvent",
    "StreamingSession",
    "Turn",
    "TurnRole",
    "InMemoryTurnStore",
    "PostgresTurnStore",
    "DirectiveClassifier",
    "DiscussionConfig",
    "RoundOrchestrator",
    "StimulusGenerator",
    "StreamingOrchestrator",
    "BackendInvoker",
    "OllamaBackend",
    "OpenAIBackend",
    "ProviderRegistry",
]
