"""
Streaming Orchestrator.

Drives an unbounded multi-provider discussion and yields one StreamEvent
per iteration until the caller sets the stop event or the session hits
its consecutive-failure threshold.

Per iteration:
    RUNNING -> INVOKING -> EMITTING -> PERSISTING -> RUNNING

Terminal states are recorded on `session.stop_reason`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime
from typing import AsyncIterator, Callable, Optional, Sequence

from ...core.exceptions import BackendError, PersistenceError, ValidationError
from ...core.resilience import SleepFunc
from ..domain.entities import (
    ConversationHistory,
    RecentDocument,
    StopReason,
    StreamEvent,
    StreamingSession,
    Turn,
    TurnRole,
)
from ..domain.ports import ITurnStore
from ..providers.invoker import BackendInvoker
from ..providers.registry import ProviderRegistry
from .config import DiscussionConfig
from .context_window import ContextWindowManager
from .directives import DirectiveClassifier
from .event_streamer import EventStreamer
from .stimulus import StimulusGenerator

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = (
    "Welcome to our ongoing discussion! Feel free to talk about anything that interests you."
)
DEFAULT_PROVIDER = "llama3.2:3b"
SESSION_PROVIDER = "infinite-chat"


class StreamingOrchestrator:
    """Runs streaming discussion sessions.

    Usage:
        orchestrator = StreamingOrchestrator(registry, invoker, store)

        session = await orchestrator.start_session(["mistral:7b"], topic="Fusion power")
        stop_event = asyncio.Event()

        async for event in orchestrator.run(session, stop_event):
            send(event.to_dict())
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        invoker: BackendInvoker,
        store: ITurnStore,
        config: Optional[DiscussionConfig] = None,
        classifier: Optional[DirectiveClassifier] = None,
        context_manager: Optional[ContextWindowManager] = None,
        stimulus: Optional[StimulusGenerator] = None,
        rng: Optional[random.Random] = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize the orchestrator.

        Args:
            registry: Provider catalog
            invoker: Backend invoker
            store: Turn store
            config: Windows, pacing and thresholds
            classifier: Directive classifier
            context_manager: Context window manager
            stimulus: Stimulus generator (shares `rng` when omitted)
            rng: Random source for provider and stimulus choice
            sleep: Awaitable sleep for pacing and cooldowns
            clock: Timestamp source for emitted events
        """
        self.registry = registry
        self.invoker = invoker
        self.store = store
        self.config = config or DiscussionConfig()
        self.classifier = classifier or DirectiveClassifier()
        self.context_manager = context_manager or ContextWindowManager(self.config)
        self.rng = rng or random.Random()
        self.stimulus = stimulus or StimulusGenerator(rng=self.rng)
        self._sleep = sleep
        self._clock = clock

    async def start_session(
        self,
        selected_providers: Optional[Sequence[str]] = None,
        topic: Optional[str] = None,
        contextual: bool = False,
    ) -> StreamingSession:
        """Validate the selection, seed history, and persist the topic.

        Raises:
            ValidationError: No selected provider is registered
        """
        requested = list(dict.fromkeys(selected_providers or [DEFAULT_PROVIDER]))
        resolved = [p for p in requested if p in self.registry]
        for dropped in set(requested) - set(resolved):
            logger.warning(f"Ignoring unknown provider: {dropped}")

        if not resolved:
            raise ValidationError(
                f"None of the selected providers are available: {', '.join(requested)}",
                field="selectedProviders",
            )

        session = StreamingSession(
            selected_providers=resolved,
            topic=topic or DEFAULT_TOPIC,
            contextual=contextual,
        )

        if contextual:
            session.history = ConversationHistory(await self._seed_turns())
            logger.info(f"Retrieved {len(session.history)} context messages")

        await self._persist(TurnRole.USER, session.topic, SESSION_PROVIDER)
        logger.info(
            f"Starting discussion with {resolved} (contextual={contextual}): {session.topic[:60]}"
        )
        return session

    async def _seed_turns(self) -> list[Turn]:
        try:
            turns = await self.store.recent_turns(
                self.config.seed_turns, roles=(TurnRole.USER, TurnRole.ASSISTANT)
            )
        except PersistenceError as e:
            logger.error(f"Error fetching conversation context: {e}")
            return []
        return list(reversed(turns))

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

    async def _pause(self, delay: float, stop_event: asyncio.Event) -> None:
        """Sleep for `delay`, waking early when the stop event is set."""
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, stopper):
                if not task.done():
                    task.cancel()

    async def run(
        self,
        session: StreamingSession,
        stop_event: asyncio.Event,
    ) -> AsyncIterator[StreamEvent]:
        """Run the discussion loop for a started session.

        Args:
            session: Session returned by `start_session`
            stop_event: Set by the caller to stop before the next iteration

        Yields:
            `message` events, `error` retry notices, and at most one
            terminal `error` event
        """
        streamer = EventStreamer(clock=self._clock, start=session.message_count)
        directive = self.classifier.classify(session.topic)
        providers = session.selected_providers
        failed_provider: Optional[str] = None

        try:
            while True:
                if stop_event.is_set():
                    session.stop_reason = StopReason.STOPPED_BY_CLIENT
                    logger.info("Client disconnected, stopping infinite chat")
                    break

                if failed_provider is None:
                    session.message_count = streamer.next_turn()
                    candidates = providers
                else:
                    candidates = [p for p in providers if p != failed_provider]
                    logger.info(f"Trying different provider instead of {failed_provider}")
                    failed_provider = None

                provider_id = self.rng.choice(candidates)
                descriptor = self.registry.resolve(provider_id)
                number = session.message_count
                logger.info(f"--- Message {number}: {provider_id} responding ---")

                stimulus = self.stimulus.maybe_stimulate(
                    number, session.history.window(self.config.stimulus_window)
                )
                documents = await self._recent_documents(self.config.stream_documents)
                messages = self.context_manager.build_stream_context(
                    session.history,
                    topic=session.topic,
                    directive=directive,
                    provider=descriptor,
                    message_number=number,
                    stimulus=stimulus,
                    continue_context=session.contextual and bool(session.history),
                    recent_documents=documents,
                )

                try:
                    reply = await self.invoker.invoke(provider_id, messages)

                except BackendError as e:
                    session.consecutive_errors += 1
                    logger.error(
                        f"Error with provider {provider_id} "
                        f"({session.consecutive_errors}/{self.config.fatal_error_threshold}): {e}"
                    )

                    if session.consecutive_errors >= self.config.fatal_error_threshold:
                        session.stop_reason = StopReason.STOPPED_ON_FAILURE
                        yield streamer.fatal()
                        break

                    if len(providers) > 1:
                        failed_provider = provider_id
                        continue

                    yield streamer.retry_notice(descriptor)
                    await self._pause(self.config.error_cooldown, stop_event)
                    continue

                if stop_event.is_set():
                    session.stop_reason = StopReason.STOPPED_BY_CLIENT
                    logger.info(f"Discarding reply {number} from {provider_id}: session stopped")
                    break

                yield streamer.message(descriptor, reply)
                logger.info(f"Sent message {number} from {provider_id}: {reply[:60]}...")

                session.history.append(
                    Turn(role=TurnRole.ASSISTANT, content=reply, provider=provider_id)
                )
                session.history.trim(
                    self.config.history_trim_threshold, self.config.history_keep
                )
                await self._persist(TurnRole.ASSISTANT, reply, provider_id)
                session.consecutive_errors = 0

                await self._pause(
                    self.rng.uniform(self.config.pace_min, self.config.pace_max),
                    stop_event,
                )

        except asyncio.CancelledError:
            session.stop_reason = session.stop_reason or StopReason.STOPPED_BY_CLIENT
            raise

        finally:
            session.active = False
