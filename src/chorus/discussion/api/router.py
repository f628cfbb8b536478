"""
FastAPI Router for the discussion orchestrator.

Provides REST endpoints for single rounds, the provider catalog and
stored history, plus the server-sent-events stream for unbounded
discussions.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from ...core.error_sanitizer import sanitize_error_message
from ...core.exceptions import PersistenceError, ValidationError
from ..domain.entities import (
    ERROR_COLOR,
    ConversationHistory,
    Turn,
    TurnRole,
)
from ..domain.ports import ITurnStore
from ..orchestrator import RoundOrchestrator, StreamingOrchestrator
from ..providers import BackendInvoker, ProviderRegistry
from .schemas import (
    ChatRequest,
    ChatResponse,
    DocumentListResponse,
    MessageItem,
    MessageListResponse,
    ProjectCreateRequest,
    ProjectCreateResponse,
    ProjectListResponse,
    ProviderHealthResponse,
    ProviderItem,
    ProviderListResponse,
    RoundResponseItem,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["discussion"])

KEEP_ALIVE_INTERVAL = 10.0
PROJECT_PROVIDER = "project-manager"


# =============================================================================
# Dependencies
# =============================================================================


class ChorusDependencies:
    """Container for discussion dependencies.

    Injected at application startup.
    """

    registry: Optional[ProviderRegistry] = None
    invoker: Optional[BackendInvoker] = None
    store: Optional[ITurnStore] = None
    round_orchestrator: Optional[RoundOrchestrator] = None
    streaming_orchestrator: Optional[StreamingOrchestrator] = None


_deps = ChorusDependencies()


def create_chorus_dependencies(
    registry: ProviderRegistry,
    invoker: BackendInvoker,
    store: ITurnStore,
    round_orchestrator: RoundOrchestrator,
    streaming_orchestrator: StreamingOrchestrator,
) -> None:
    """Initialize discussion dependencies.

    Call this at application startup.
    """
    _deps.registry = registry
    _deps.invoker = invoker
    _deps.store = store
    _deps.round_orchestrator = round_orchestrator
    _deps.streaming_orchestrator = streaming_orchestrator


def clear_chorus_dependencies() -> None:
    _deps.registry = None
    _deps.invoker = None
    _deps.store = None
    _deps.round_orchestrator = None
    _deps.streaming_orchestrator = None


def _require(value, name: str):
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return value


def get_registry() -> ProviderRegistry:
    return _require(_deps.registry, "Provider registry")


def get_invoker() -> BackendInvoker:
    return _require(_deps.invoker, "Backend invoker")


def get_store() -> ITurnStore:
    return _require(_deps.store, "Turn store")


def get_round_orchestrator() -> RoundOrchestrator:
    return _require(_deps.round_orchestrator, "Round orchestrator")


def get_streaming_orchestrator() -> StreamingOrchestrator:
    return _require(_deps.streaming_orchestrator, "Streaming orchestrator")


def _persistence_failure(e: PersistenceError, what: str) -> HTTPException:
    logger.error(f"Failed to {what}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {what}: {sanitize_error_message(str(e))}",
    )


# =============================================================================
# Provider Catalog
# =============================================================================


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    registry: ProviderRegistry = Depends(get_registry),
) -> ProviderListResponse:
    """List the selectable providers."""
    return ProviderListResponse(
        providers=[ProviderItem(**p.to_dict()) for p in registry.list()]
    )


@router.get("/providers/health", response_model=ProviderHealthResponse, response_model_exclude_none=True)
async def probe_providers(
    invoker: BackendInvoker = Depends(get_invoker),
) -> ProviderHealthResponse:
    """Send a short prompt to every provider and report which ones answer."""
    results = await invoker.probe_all()
    working = sum(1 for r in results if r["status"] == "working")
    logger.info(f"Provider probe: {working}/{len(results)} working")
    return ProviderHealthResponse(results=results, working=working, total=len(results))


# =============================================================================
# Rounds
# =============================================================================


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat_round(
    body: ChatRequest,
    orchestrator: RoundOrchestrator = Depends(get_round_orchestrator),
) -> ChatResponse:
    """Run one round: each selected provider replies once, in order."""
    logger.info("=== Single round chat request received ===")

    history = ConversationHistory(
        Turn(role=TurnRole(m.role), content=m.content, provider=m.provider)
        for m in body.messages
    )

    try:
        responses = await orchestrator.run_round(history, body.selected_providers)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return ChatResponse(
        responses=[RoundResponseItem(**r.to_dict()) for r in responses]
    )


# =============================================================================
# Streaming Discussion
# =============================================================================


@router.get("/infinite-chat")
async def infinite_chat(
    request: Request,
    selected_providers: Optional[str] = Query(default=None, alias="selectedProviders"),
    topic: Optional[str] = Query(default=None),
    contextual: bool = Query(default=False),
    orchestrator: StreamingOrchestrator = Depends(get_streaming_orchestrator),
) -> StreamingResponse:
    """Stream an unbounded discussion as server-sent events.

    Each event is `data: <json>\\n\\n`. A `: keep-alive` comment is sent
    when nothing was emitted for a while.
    """
    selected = (
        [p.strip() for p in selected_providers.split(",") if p.strip()]
        if selected_providers
        else None
    )

    try:
        session = await orchestrator.start_session(selected, topic, contextual)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
    stop_event = asyncio.Event()

    async def publish(data: dict) -> None:
        await queue.put(f"data: {json.dumps(data)}\n\n")

    async def run_session():
        """Run the discussion loop and publish its events."""
        try:
            async for event in orchestrator.run(session, stop_event):
                await publish(event.to_dict())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Error in infinite chat")
            await publish({
                "type": "error",
                "content": sanitize_error_message(str(e)),
                "color": ERROR_COLOR,
                "terminal": True,
            })
        finally:
            queue.put_nowait(None)

    async def event_generator():
        """Generate SSE events from the queue."""
        task = asyncio.create_task(run_session())

        try:
            while True:
                if await request.is_disconnected():
                    logger.info("Client disconnected from SSE stream")
                    break

                try:
                    chunk = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_INTERVAL)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue

                if chunk is None:
                    break
                yield chunk

        except asyncio.CancelledError:
            pass
        finally:
            # Let an in-flight backend call finish before cancelling
            stop_event.set()
            if not task.done():
                await asyncio.wait({task}, timeout=orchestrator.config.stop_grace_period)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info(
                f"Discussion ended after {session.message_count} messages "
                f"({session.stop_reason.value if session.stop_reason else 'completed'})"
            )

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",  # Disable Nginx buffering
    }

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=headers,
    )


# =============================================================================
# Stored History
# =============================================================================


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(store: ITurnStore = Depends(get_store)) -> MessageListResponse:
    """Full message log, oldest first."""
    try:
        turns = await store.list_turns()
    except PersistenceError as e:
        raise _persistence_failure(e, "get messages")

    return MessageListResponse(
        messages=[
            MessageItem(
                id=t.id,
                role=t.role.value,
                content=t.content,
                provider=t.provider,
                timestamp=t.timestamp,
            )
            for t in turns
        ]
    )


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(store: ITurnStore = Depends(get_store)) -> DocumentListResponse:
    """Stored document metadata, newest first."""
    try:
        documents = await store.list_documents()
    except PersistenceError as e:
        raise _persistence_failure(e, "fetch documents")
    return DocumentListResponse(documents=documents)


# =============================================================================
# Projects
# =============================================================================


def build_project_brief(
    name: str, description: Optional[str], requirements: Optional[str]
) -> str:
    return (
        f"NEW PROJECT CREATED: {name}\n\n"
        f"Description: {description}\n\n"
        f"Requirements: {requirements}\n\n"
        "All AIs should collaborate on breaking this down into tasks and assigning "
        "responsibilities based on expertise."
    )


@router.post("/project/create", response_model=ProjectCreateResponse)
async def create_project(
    body: ProjectCreateRequest,
    store: ITurnStore = Depends(get_store),
) -> ProjectCreateResponse:
    """Create a project and post its brief into the conversation log."""
    brief = build_project_brief(body.name, body.description, body.requirements)

    try:
        project_id = await store.create_project(body.name, body.description, body.requirements)
        await store.append_turn(TurnRole.SYSTEM, brief, PROJECT_PROVIDER)
    except PersistenceError as e:
        raise _persistence_failure(e, "create project")

    return ProjectCreateResponse(project_id=project_id, project_brief=brief)


@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(store: ITurnStore = Depends(get_store)) -> ProjectListResponse:
    """Projects, newest first."""
    try:
        projects = await store.list_projects()
    except PersistenceError as e:
        raise _persistence_failure(e, "fetch projects")
    return ProjectListResponse(projects=projects)
