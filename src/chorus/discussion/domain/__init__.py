"""Domain entities and port interfaces for the discussion module."""

from .entities import (
    PLACEHOLDER_MARKER,
    STREAM_CONTEXT_LEAD,
    BackendProtocol,
    ConversationHistory,
    Directive,
    DirectiveKind,
    DirectivePriority,
    GenerationParams,
    ProviderDescriptor,
    RecentDocument,
    Reliability,
    RoundResponse,
    StopReason,
    StreamEvent,
    StreamEventType,
    StreamingSession,
    Turn,
    TurnRole,
)
from .ports import IChatBackend, ITurnStore

__all__ = [
    # Entities
    "PLACEHOLDER_MARKER",
    "STREAM_CONTEXT_LEAD",
    "BackendProtocol",
    "ConversationHistory",
    "Directive",
    "DirectiveKind",
    "DirectivePriority",
    "GenerationParams",
    "ProviderDescriptor",
    "RecentDocument",
    "Reliability",
    "RoundResponse",
    "StopReason",
    "StreamEvent",
    "StreamEventType",
    "StreamingSession",
    "Turn",
    "TurnRole",
    # Ports
    "IChatBackend",
    "ITurnStore",
]
