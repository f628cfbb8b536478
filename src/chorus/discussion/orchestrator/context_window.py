"""
Context Window Manager.

Builds the bounded message list for one backend call: exactly one system
turn first, followed by a trailing window of the conversation with blank
and placeholder turns filtered out. Synthetic system turns held in the
history are never forwarded.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..domain.entities import (
    STREAM_CONTEXT_LEAD,
    ConversationHistory,
    Directive,
    ProviderDescriptor,
    RecentDocument,
    Turn,
    TurnRole,
)
from .config import DiscussionConfig
from .prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)


def _usable(turns: Iterable[Turn]) -> list[Turn]:
    return [t for t in turns if t.role != TurnRole.SYSTEM and not t.is_blank]


class ContextWindowManager:
    """Builds per-call message lists for both orchestration modes.

    Usage:
        manager = ContextWindowManager(DiscussionConfig())

        messages = manager.build_context(
            history, directive, provider, turn_index=0, recent_documents=docs,
        )
        # [{"role": "system", ...}, {"role": "user", "content": "hello"}]
    """

    def __init__(
        self,
        config: Optional[DiscussionConfig] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.config = config or DiscussionConfig()
        self.prompt_builder = prompt_builder or PromptBuilder(
            excerpt_length=self.config.excerpt_length,
        )

    def build_context(
        self,
        history: ConversationHistory,
        directive: Directive,
        provider: ProviderDescriptor,
        turn_index: int,
        recent_documents: Optional[Sequence[RecentDocument]] = None,
    ) -> list[dict[str, str]]:
        """Round framing: system instruction plus the trailing window verbatim."""
        system = self.prompt_builder.build_round(
            provider=provider,
            directive=directive,
            turn_index=turn_index,
            documents=recent_documents,
        )

        messages = [{"role": TurnRole.SYSTEM.value, "content": system}]
        messages.extend(
            turn.to_api_message()
            for turn in _usable(history.window(self.config.round_window))
        )
        return messages

    def build_stream_context(
        self,
        history: ConversationHistory,
        topic: str,
        directive: Directive,
        provider: ProviderDescriptor,
        message_number: int,
        stimulus: Optional[str] = None,
        continue_context: bool = False,
        recent_documents: Optional[Sequence[RecentDocument]] = None,
    ) -> list[dict[str, str]]:
        """Streaming framing.

        Assistant turns are attributed (`"<provider>: "`) and every turn is
        truncated to the excerpt length. With nothing usable in the window
        the bare topic is sent.
        """
        system = self.prompt_builder.build_stream(
            provider=provider,
            message_number=message_number,
            directive=directive,
            stimulus=stimulus,
            continue_context=continue_context,
            documents=recent_documents,
        )

        messages = [{"role": TurnRole.SYSTEM.value, "content": system}]
        window = _usable(history.window(self.config.stream_window))

        if not window:
            messages.append({"role": TurnRole.USER.value, "content": topic})
            return messages

        limit = self.config.excerpt_length
        messages.append({"role": TurnRole.USER.value, "content": STREAM_CONTEXT_LEAD})
        for turn in window:
            if turn.role == TurnRole.ASSISTANT:
                messages.append({
                    "role": TurnRole.ASSISTANT.value,
                    "content": f"{turn.provider}: {turn.content[:limit]}",
                })
            else:
                messages.append({"role": TurnRole.USER.value, "content": turn.content[:limit]})

        return messages
