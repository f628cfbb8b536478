"""
Prompt Builder for the discussion orchestrators.

Composes the single system instruction sent with each backend call:
- Identity and expertise framing
- Directive override
- Build-on instruction for later providers in a round
- Length constraint for every round turn
- Stimulus and length constraints for streaming turns
- Recent document digest
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..domain.entities import Directive, ProviderDescriptor, RecentDocument

logger = logging.getLogger(__name__)

BUILD_ON_INSTRUCTION = (
    "Previous AI agents have already responded. Build upon their ideas, add your "
    "perspective, or respectfully expand/critique their points."
)

ROUND_LENGTH_CONSTRAINT = "Keep your response concise but insightful."

CONTEXTUAL_NOTE = (
    "Continue the existing conversation naturally, building on previous points "
    "and exploring the topic in depth."
)

STREAM_LENGTH_CONSTRAINT = "Keep responses under 200 words but make them thoughtful and engaging."


class PromptBuilder:
    """Builds system instructions for round and streaming turns.

    Usage:
        builder = PromptBuilder(excerpt_length=300)

        instruction = builder.build_round(
            provider=registry.resolve("mistral:7b"),
            directive=directive,
            turn_index=1,
            documents=recent_docs,
        )
    """

    def __init__(self, excerpt_length: int = 300):
        """Initialize the prompt builder.

        Args:
            excerpt_length: Characters of document content quoted in round digests
        """
        self.excerpt_length = excerpt_length

    def build_round(
        self,
        provider: ProviderDescriptor,
        directive: Directive,
        turn_index: int,
        documents: Optional[Sequence[RecentDocument]] = None,
    ) -> str:
        """Build the system instruction for one provider in a round.

        Args:
            provider: Provider being called
            directive: Directive classified from the last user turn
            turn_index: Position among the round's resolved providers
            documents: Recent documents to digest

        Returns:
            System instruction text
        """
        if directive.is_normal:
            prompt = f"You are {provider.name} in a group discussion. Your expertise: {provider.expertise}."
        else:
            prompt = f"{directive.instruction} Your specific role: {provider.expertise}."

        if turn_index > 0:
            prompt += f" {BUILD_ON_INSTRUCTION}"
        prompt += f" {ROUND_LENGTH_CONSTRAINT}"

        if documents:
            digest = "\n\n".join(
                f"{doc.name}: {doc.content[:self.excerpt_length]}..." for doc in documents
            )
            prompt += f"\n\nAvailable documents for reference:\n{digest}"

        return prompt

    def build_stream(
        self,
        provider: ProviderDescriptor,
        message_number: int,
        directive: Directive,
        stimulus: Optional[str] = None,
        continue_context: bool = False,
        documents: Optional[Sequence[RecentDocument]] = None,
    ) -> str:
        """Build the system instruction for one streaming turn.

        The directive, when present, replaces the identity framing and
        suppresses the stimulus.
        """
        if directive.is_normal:
            prompt = (
                f"You are {provider.name} (Message #{message_number}) in an ongoing AI "
                f"discussion. Your expertise: {provider.expertise}."
            )
            if continue_context:
                prompt += f" {CONTEXTUAL_NOTE}"
            if stimulus:
                prompt += f" {stimulus}"
        else:
            prompt = (
                f"{directive.instruction} Your specific expertise: {provider.expertise}. "
                f"Message #{message_number}."
            )

        prompt += f" {STREAM_LENGTH_CONSTRAINT}"

        if documents:
            names = ", ".join(f"File: {doc.name} ({doc.type})" for doc in documents)
            prompt += f" Recent documents available: {names}. Reference these if relevant."

        return prompt
