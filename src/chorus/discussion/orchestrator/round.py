"""
Round Orchestrator.

Runs one synchronous round: each selected provider replies once, in
selection order, and each reply is folded into the context of the
providers that follow it.

Flow:
    1. Classify the directive from the last user turn
    2. Fetch recent documents once
    3. Persist the user turn
    4. For each provider: build context -> invoke -> append result
    5. Return the response batch
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ...core.error_sanitizer import sanitize_error_message
from ...core.exceptions import BackendError, PersistenceError, ValidationError
from ..domain.entities import (
    ERROR_COLOR,
    ConversationHistory,
    RecentDocument,
    RoundResponse,
    Turn,
    TurnRole,
)
from ..domain.ports import ITurnStore
from ..providers.invoker import BackendInvoker
from ..providers.registry import ProviderRegistry
from .config import DiscussionConfig
from .context_window import ContextWindowManager
from .directives import DirectiveClassifier

logger = logging.getLogger(__name__)

USER_PROVIDER = "user"


class RoundOrchestrator:
    """Coordinates a single round across the selected providers.

    Usage:
        orchestrator = RoundOrchestrator(
            registry=registry,
            invoker=invoker,
            store=store,
        )

        responses = await orchestrator.run_round(
            ConversationHistory([Turn(TurnRole.USER, "hello")]),
            ["mistral:7b", "codellama:7b"],
        )
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        invoker: BackendInvoker,
        store: ITurnStore,
        config: Optional[DiscussionConfig] = None,
        classifier: Optional[DirectiveClassifier] = None,
        context_manager: Optional[ContextWindowManager] = None,
    ):
        self.registry = registry
        self.invoker = invoker
        self.store = store
        self.config = config or DiscussionConfig()
        self.classifier = classifier or DirectiveClassifier()
        self.context_manager = context_manager or ContextWindowManager(self.config)

    async def _recent_documents(self, limit: int) -> list[RecentDocument]:
        try:
            return await self.store.recent_documents(limit)
        except PersistenceError as e:
            logger.warning(f"Could not fetch recent documents: {e}")
            return []

    async def _persist(self, role: TurnRole, content: str, provider_id: str) -> None:
        try:
            await self.store.append_turn(role, content, provider_id)
        except PersistenceError as e:
            logger.error(f"Failed to persist {role.value} turn from {provider_id}: {e}")

    async def run_round(
        self,
        history: ConversationHistory,
        selected_providers: Sequence[str],
    ) -> list[RoundResponse]:
        """Run one round.

        Args:
            history: Conversation so far; the last user turn is the prompt
            selected_providers: Provider ids in reply order

        Returns:
            One entry per resolvable provider, in selection order

        Raises:
            ValidationError: Empty history or empty selection
        """
        if not history:
            raise ValidationError("Invalid messages array", field="messages")
        if not selected_providers:
            raise ValidationError("At least one provider must be selected", field="selectedProviders")

        prompt_turn = history.last_user_turn() or history.window(1)[0]
        logger.info(f"Round for {len(selected_providers)} providers: {prompt_turn.content[:60]}")

        directive = self.classifier.classify(prompt_turn.content)
        if not directive.is_normal:
            logger.info(f"Directive detected: {directive.kind.value} ({directive.priority.value})")

        documents = await self._recent_documents(self.config.round_documents)
        await self._persist(TurnRole.USER, prompt_turn.content, USER_PROVIDER)

        working = ConversationHistory(history)
        responses: list[RoundResponse] = []
        turn_index = 0

        for position, provider_id in enumerate(selected_providers, start=1):
            descriptor = self.registry.get(provider_id)
            if descriptor is None:
                logger.error(f"Provider not found: {provider_id}")
                continue

            logger.info(
                f"Processing provider {position}/{len(selected_providers)}: {provider_id}"
            )
            messages = self.context_manager.build_context(
                working, directive, descriptor, turn_index, documents,
            )
            turn_index += 1

            try:
                reply = await self.invoker.invoke(provider_id, messages)

            except BackendError as e:
                logger.error(f"Error with provider {provider_id}: {e}")
                responses.append(
                    RoundResponse(
                        provider=provider_id,
                        provider_name=descriptor.name,
                        content=(
                            f"Error: Could not get response from {provider_id} - "
                            f"{sanitize_error_message(str(e))}"
                        ),
                        color=ERROR_COLOR,
                        error=True,
                    )
                )
                continue

            responses.append(
                RoundResponse(
                    provider=provider_id,
                    provider_name=descriptor.name,
                    content=reply,
                    color=descriptor.color,
                    expertise=descriptor.expertise,
                )
            )
            working.append(Turn(role=TurnRole.ASSISTANT, content=reply, provider=provider_id))
            await self._persist(TurnRole.ASSISTANT, reply, provider_id)

        logger.info(f"Round complete with {len(responses)} responses")
        return responses
