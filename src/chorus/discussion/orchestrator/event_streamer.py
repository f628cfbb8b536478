"""
Event Streamer for StreamEvent creation.

Owns a session's message counter so every emitted event carries the next
number and numbers are never reused within the session.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..domain.entities import (
    ERROR_COLOR,
    ProviderDescriptor,
    StreamEvent,
    StreamEventType,
)

RETRY_NOTICE = "Temporarily unable to respond. Trying again..."
FATAL_NOTICE = (
    "Multiple AI providers are having issues. Please check your Ollama setup "
    "and model availability."
)


class EventStreamer:
    """Creates StreamEvents with a strictly increasing message counter.

    The counter is advanced explicitly with `next_turn()` at the start of
    an iteration; the event created for that iteration carries its value.

    Usage:
        streamer = EventStreamer()

        n = streamer.next_turn()            # 1
        event = streamer.message(provider, "Hello")
        # event.message_count == 1
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.utcnow,
        start: int = 0,
    ):
        """Initialize the event streamer.

        Args:
            clock: Timestamp source for message events
            start: Counter value before the first turn
        """
        self._clock = clock
        self._sequence = start

    def next_turn(self) -> int:
        self._sequence += 1
        return self._sequence

    def message(self, provider: ProviderDescriptor, content: str) -> StreamEvent:
        return StreamEvent(
            type=StreamEventType.MESSAGE,
            message_count=self._sequence,
            provider=provider.id,
            provider_name=provider.name,
            content=content,
            color=provider.color,
            timestamp=self._clock(),
            expertise=provider.expertise,
        )

    def retry_notice(self, provider: ProviderDescriptor) -> StreamEvent:
        return StreamEvent(
            type=StreamEventType.ERROR,
            message_count=self._sequence,
            provider=provider.id,
            provider_name=provider.name,
            content=RETRY_NOTICE,
            color=ERROR_COLOR,
        )

    def fatal(self, content: Optional[str] = None) -> StreamEvent:
        """Terminal event ending the session."""
        return StreamEvent(
            type=StreamEventType.ERROR,
            content=content or FATAL_NOTICE,
            color=ERROR_COLOR,
            terminal=True,
        )
