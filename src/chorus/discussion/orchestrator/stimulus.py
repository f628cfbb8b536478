"""
Stimulus Generator.

Injects a conversation-steering prompt into an unattended discussion when
it goes quiet or at fixed cadences.
"""

from __future__ import annotations

import random
from typing import Optional, Sequence

from ..domain.entities import PLACEHOLDER_MARKER, Turn

TOPIC_CONTINUATION_PROMPTS: tuple[str, ...] = (
    "I want to explore this topic further - what are some aspects we haven't considered yet?",
    "This is fascinating - let's dive deeper into the implications of what we've discussed.",
    "Building on our conversation, what are the most important questions we should be asking?",
    "I'd like to challenge some assumptions we might be making about this topic.",
    "What would happen if we approached this problem from a completely different angle?",
    "Are there any counterarguments or alternative perspectives we should examine?",
    "Let's think about the practical applications of what we've been discussing.",
    "What are the potential risks or unintended consequences we should consider?",
    "How does this topic connect to broader trends or patterns?",
    "What evidence would we need to either support or refute our current understanding?",
)

DEBATE_PROMPTS: tuple[str, ...] = (
    "I want to respectfully challenge that perspective. Here's why:",
    "That's an interesting point, but what about this potential issue:",
    "I'm not entirely convinced by that reasoning. Consider this:",
    "Playing devil's advocate - couldn't someone argue the opposite:",
    "That raises a good point, but there might be a gap in the logic:",
    "I see merit in that view, but what if we approached it differently:",
    "That's thought-provoking, but you might be overlooking:",
    "I want to push back on that assumption - what if:",
    "Interesting perspective, but consider this counterexample:",
    "I think we need to examine the underlying premises here:",
)


class StimulusGenerator:
    """Chooses a continuation or debate prompt for a streaming turn.

    Usage:
        generator = StimulusGenerator(rng=random.Random(7))
        stimulus = generator.maybe_stimulate(10, recent_turns)
        # one of TOPIC_CONTINUATION_PROMPTS
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        continuation_every: int = 10,
        debate_every: int = 6,
        boost_sample: int = 3,
        boost_mean_length: int = 50,
        boost_min_length: int = 20,
    ):
        self.rng = rng or random.Random()
        self.continuation_every = continuation_every
        self.debate_every = debate_every
        self.boost_sample = boost_sample
        self.boost_mean_length = boost_mean_length
        self.boost_min_length = boost_min_length

    def needs_boost(self, recent_turns: Sequence[Turn]) -> bool:
        """True when the last few turns look stalled."""
        if len(recent_turns) < self.boost_sample:
            return False

        sample = list(recent_turns)[-self.boost_sample:]
        lengths = [len(turn.content or "") for turn in sample]

        if sum(lengths) / len(sample) < self.boost_mean_length:
            return True

        return any(
            not turn.content
            or PLACEHOLDER_MARKER in turn.content
            or len(turn.content) < self.boost_min_length
            for turn in sample
        )

    def maybe_stimulate(self, turn_count: int, recent_turns: Sequence[Turn]) -> Optional[str]:
        if turn_count % self.continuation_every == 0 or self.needs_boost(recent_turns):
            return self.rng.choice(TOPIC_CONTINUATION_PROMPTS)

        if turn_count % self.debate_every == 0:
            return self.rng.choice(DEBATE_PROMPTS)

        return None
