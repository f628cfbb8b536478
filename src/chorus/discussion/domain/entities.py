"""
Domain entities for the discussion orchestrator.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures shared by the orchestrators,
the provider layer, and the turn store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

# Marker a backend emits when it had nothing to say
PLACEHOLDER_MARKER = "No response"

# Synthetic user turn opening a streamed context window
STREAM_CONTEXT_LEAD = "Continue our discussion based on this conversation context:"

# ============================================
# Turns
# ============================================


class TurnRole(str, Enum):
    """Role of a turn in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Turn:
    """One role-tagged message in a conversation.

    Attributes:
        role: Turn role (user, assistant, system)
        content: Turn text
        provider: Provider id, or a sentinel such as 'user' / 'infinite-chat'
        timestamp: Creation time
        id: Store-assigned identifier (None until persisted)
    """

    role: TurnRole
    content: str
    provider: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)
    id: Optional[int] = None

    @property
    def is_blank(self) -> bool:
        """True for empty or placeholder content."""
        return not self.content or not self.content.strip() or PLACEHOLDER_MARKER in self.content

    def to_api_message(self) -> dict[str, str]:
        """Convert to the role/content pair sent to a backend."""
        return {"role": self.role.value, "content": self.content}


class ConversationHistory:
    """Ordered in-memory turns for one orchestration run.

    Unlike the persisted log, it may hold synthetic system turns and is
    trimmed as the run goes on.
    """

    def __init__(self, turns: Optional[Iterable[Turn]] = None):
        self._turns: list[Turn] = list(turns or [])

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    def window(self, size: int) -> list[Turn]:
        """Return the most recent `size` turns (all of them if fewer)."""
        if size <= 0:
            return []
        return self._turns[-size:]

    def trim(self, threshold: int, keep: int) -> bool:
        """Keep only the last `keep` turns once length exceeds `threshold`.

        Returns:
            True if the history was trimmed
        """
        if len(self._turns) > threshold:
            self._turns = self._turns[-keep:]
            return True
        return False

    def last_user_turn(self) -> Optional[Turn]:
        for turn in reversed(self._turns):
            if turn.role == TurnRole.USER:
                return turn
        return None

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __bool__(self) -> bool:
        return bool(self._turns)


@dataclass(frozen=True)
class RecentDocument:
    """An uploaded document as read back from the store."""

    name: str
    content: str
    type: Optional[str] = None


# ============================================
# Providers
# ============================================


class Reliability(str, Enum):
    """Observed reliability tier of a provider."""

    HIGH = "high"
    MEDIUM = "medium"


class BackendProtocol(str, Enum):
    """Wire protocol used to reach a provider's model."""

    OLLAMA = "ollama"
    OPENAI = "openai"


@dataclass(frozen=True)
class GenerationParams:
    """Model-specific generation parameters.

    Kept on the provider descriptor so tuning a model never touches
    orchestration code. `extra` carries protocol-specific options
    (mirostat, tfs_z, ...) verbatim.
    """

    temperature: float = 0.8
    top_p: float = 0.9
    top_k: Optional[int] = 40
    repeat_penalty: Optional[float] = 1.1
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    num_ctx: Optional[int] = 4096
    max_tokens: int = 400
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerationParams:
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        unknown = {k: v for k, v in data.items() if k not in cls.__dataclass_fields__}
        if unknown:
            known["extra"] = {**known.get("extra", {}), **unknown}
        return cls(**known)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of a selectable model backend.

    Attributes:
        id: Stable provider id (also the model name sent to the backend)
        name: Display name
        description: Capability description for the catalog
        color: Display color
        reliability: Reliability tier
        protocol: Backend protocol used to invoke it
        expertise: Expertise label injected into system instructions
        params: Generation parameters
    """

    id: str
    name: str
    description: str = ""
    color: str = "#666"
    reliability: Reliability = Reliability.MEDIUM
    protocol: BackendProtocol = BackendProtocol.OLLAMA
    expertise: str = "General development support"
    params: GenerationParams = field(default_factory=GenerationParams)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "type": self.protocol.value,
            "reliability": self.reliability.value,
            "expertise": self.expertise,
        }


# ============================================
# Directives
# ============================================


class DirectiveKind(str, Enum):
    """Intent classified from user text."""

    NORMAL = "normal"
    PROJECT = "project"
    CODE = "code"
    DEBUG = "debug"
    REVIEW = "review"
    ANALYZE = "analyze"


class DirectivePriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Directive:
    """Classified intent with the system instruction it implies."""

    kind: DirectiveKind = DirectiveKind.NORMAL
    instruction: Optional[str] = None
    priority: DirectivePriority = DirectivePriority.NORMAL

    @property
    def is_normal(self) -> bool:
        return self.kind == DirectiveKind.NORMAL


# ============================================
# Round Responses
# ============================================

ERROR_COLOR = "#dc2626"


@dataclass
class RoundResponse:
    """One provider's entry in a round's response batch."""

    provider: str
    provider_name: str
    content: str
    color: str
    role: str = TurnRole.ASSISTANT.value
    expertise: Optional[str] = None
    error: bool = False

    def to_dict(self) -> dict[str, Any]:
        result = {
            "provider": self.provider,
            "providerName": self.provider_name,
            "content": self.content,
            "color": self.color,
            "role": self.role,
        }
        if self.expertise is not None:
            result["expertise"] = self.expertise
        if self.error:
            result["error"] = True
        return result


# ============================================
# Streaming
# ============================================


class StreamEventType(str, Enum):
    """Types of streamed discussion events."""

    MESSAGE = "message"
    ERROR = "error"


class StopReason(str, Enum):
    """Why a streaming session ended."""

    STOPPED_BY_CLIENT = "stopped_by_client"
    STOPPED_ON_FAILURE = "stopped_on_failure"


@dataclass
class StreamEvent:
    """A streamed discussion event.

    Serialized with the camelCase keys the browser client reads
    (`messageCount`, `providerName`).
    """

    type: StreamEventType
    message_count: Optional[int] = None
    provider: Optional[str] = None
    provider_name: Optional[str] = None
    content: Optional[str] = None
    color: Optional[str] = None
    timestamp: Optional[datetime] = None
    expertise: Optional[str] = None
    terminal: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"type": self.type.value}
        if self.message_count is not None:
            result["messageCount"] = self.message_count
        if self.provider is not None:
            result["provider"] = self.provider
        if self.provider_name is not None:
            result["providerName"] = self.provider_name
        if self.content is not None:
            result["content"] = self.content
        if self.color is not None:
            result["color"] = self.color
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp.isoformat()
        if self.expertise is not None:
            result["expertise"] = self.expertise
        if self.terminal:
            result["terminal"] = True
        return result


@dataclass
class StreamingSession:
    """State owned by one streaming orchestrator run.

    Attributes:
        selected_providers: Provider ids the session picks from
        topic: Seed topic
        contextual: Whether to continue from persisted conversation
        message_count: Index of the latest emitted event
        consecutive_errors: Failures since the last success
        active: False once the loop has exited
        history: In-memory trailing history
        stop_reason: Terminal state once stopped
    """

    selected_providers: list[str]
    topic: str
    contextual: bool = False
    message_count: int = 0
    consecutive_errors: int = 0
    active: bool = True
    history: ConversationHistory = field(default_factory=ConversationHistory)
    stop_reason: Optional[StopReason] = None
