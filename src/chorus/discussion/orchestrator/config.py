"""
Discussion tunables shared by the round and streaming orchestrators.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DiscussionConfig:
    """Windows, pacing and thresholds for orchestration runs.

    Attributes:
        round_window: History turns sent per round call
        stream_window: History turns sent per streaming call
        excerpt_length: Characters kept per turn / document excerpt
        round_documents: Recent documents fetched per round
        stream_documents: Recent documents fetched per streaming iteration
        stimulus_window: Trailing turns inspected by the stimulus generator
        history_trim_threshold: Streaming history length that triggers a trim
        history_keep: Turns kept after a trim
        seed_turns: Persisted turns loaded for a contextual session
        pace_min: Minimum pause between streamed messages (seconds)
        pace_max: Maximum pause between streamed messages (seconds)
        error_cooldown: Pause after an unrecovered streaming failure (seconds)
        fatal_error_threshold: Consecutive failures that end a session
        stop_grace_period: Time a stopping session gets to finish its call
    """

    round_window: int = 8
    stream_window: int = 4
    excerpt_length: int = 300
    round_documents: int = 3
    stream_documents: int = 2
    stimulus_window: int = 6
    history_trim_threshold: int = 12
    history_keep: int = 8
    seed_turns: int = 8
    pace_min: float = 2.0
    pace_max: float = 5.0
    error_cooldown: float = 3.0
    fatal_error_threshold: int = 5
    stop_grace_period: float = 5.0

    def __post_init__(self):
        if self.pace_min > self.pace_max:
            raise ValueError("pace_min must not exceed pace_max")
        if self.fatal_error_threshold < 1:
            raise ValueError("fatal_error_threshold must be at least 1")
        if self.history_keep > self.history_trim_threshold:
            raise ValueError("history_keep must not exceed history_trim_threshold")
