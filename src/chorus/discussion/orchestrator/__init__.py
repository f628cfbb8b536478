"""Round and streaming orchestration."""

from .config import DiscussionConfig
from .context_window import ContextWindowManager
from .directives import DEFAULT_RULES, DirectiveClassifier, DirectiveRule
from .event_streamer import EventStreamer
from .prompt_builder import PromptBuilder
from .round import RoundOrchestrator
from .stimulus import StimulusGenerator
from .streaming import DEFAULT_TOPIC, StreamingOrchestrator

__all__ = [
    "DiscussionConfig",
    "ContextWindowManager",
    "DEFAULT_RULES",
    "DirectiveClassifier",
    "DirectiveRule",
    "EventStreamer",
    "PromptBuilder",
    "RoundOrchestrator",
    "StimulusGenerator",
    "DEFAULT_TOPIC",
    "StreamingOrchestrator",
]
