"""FastAPI application for the Chorus discussion server.

This is the main entry point for the API server.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.resilience import RetryPolicy
from .discussion.api import clear_chorus_dependencies, create_chorus_dependencies
from .discussion.api import router as discussion_router
from .discussion.domain import BackendProtocol, IChatBackend, ITurnStore
from .discussion.memory import InMemoryTurnStore, PostgresTurnStore, create_pool
from .discussion.orchestrator import (
    DiscussionConfig,
    RoundOrchestrator,
    StreamingOrchestrator,
)
from .discussion.providers import (
    BackendConfig,
    BackendInvoker,
    OllamaBackend,
    OpenAIBackend,
    ProviderRegistry,
)

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Shared components (initialized on startup)
_invoker: Optional[BackendInvoker] = None
_store: Optional[ITurnStore] = None


def load_registry() -> ProviderRegistry:
    """Provider catalog from CHORUS_PROVIDERS_FILE, or the built-in one."""
    providers_file = os.getenv("CHORUS_PROVIDERS_FILE")
    if providers_file:
        return ProviderRegistry.from_file(providers_file)
    return ProviderRegistry.default()


def load_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=int(os.getenv("BACKEND_MAX_ATTEMPTS", "3")),
        backoff_base=float(os.getenv("BACKEND_BACKOFF_BASE", "2.0")),
    )


def build_backends() -> dict[BackendProtocol, IChatBackend]:
    """Backend clients per protocol.

    The OpenAI-compatible client is only built when a key or base URL is set.
    """
    timeout = float(os.getenv("BACKEND_TIMEOUT", "120"))

    backends: dict[BackendProtocol, IChatBackend] = {
        BackendProtocol.OLLAMA: OllamaBackend(
            BackendConfig(base_url=os.getenv("OLLAMA_BASE_URL"), timeout=timeout)
        ),
    }

    openai_key = os.getenv("OPENAI_API_KEY")
    openai_base_url = os.getenv("OPENAI_BASE_URL")
    if openai_key or openai_base_url:
        backends[BackendProtocol.OPENAI] = OpenAIBackend(
            BackendConfig(base_url=openai_base_url, api_key=openai_key, timeout=timeout)
        )
        logger.info("OpenAI-compatible backend configured")

    return backends


async def build_store() -> ITurnStore:
    """PostgreSQL store when DATABASE_URL is set, in-memory otherwise."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.warning("DATABASE_URL not configured - using in-memory turn store")
        return InMemoryTurnStore()

    pool = await create_pool(
        database_url,
        min_size=int(os.getenv("DB_POOL_MIN", "2")),
        max_size=int(os.getenv("DB_POOL_MAX", "10")),
    )
    store = PostgresTurnStore(pool)
    await store.initialize()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: Build registry, backends, turn store and orchestrators
    - Shutdown: Close backend clients and the turn store
    """
    global _invoker, _store

    logger.info("Starting Chorus discussion server...")

    registry = load_registry()
    logger.info(f"Provider registry loaded with {len(registry)} providers")

    try:
        _store = await build_store()
    except Exception as e:
        logger.error(f"Failed to initialize turn store: {e}")
        raise

    _invoker = BackendInvoker(
        registry=registry,
        backends=build_backends(),
        policy=load_retry_policy(),
    )

    config = DiscussionConfig()
    create_chorus_dependencies(
        registry=registry,
        invoker=_invoker,
        store=_store,
        round_orchestrator=RoundOrchestrator(registry, _invoker, _store, config=config),
        streaming_orchestrator=StreamingOrchestrator(registry, _invoker, _store, config=config),
    )

    yield

    # Shutdown (reverse order of initialization)
    logger.info("Shutting down Chorus discussion server...")
    clear_chorus_dependencies()

    if _invoker:
        await _invoker.close()
        _invoker = None
        logger.info("Backend clients closed")

    if _store:
        await _store.close()
        _store = None


# Create FastAPI application
app = FastAPI(
    title="Chorus Discussion API",
    description="""
    Multi-model discussion orchestrator.

    ## Features
    - **Rounds**: Every selected model replies once, building on earlier replies
    - **Infinite chat**: Unbounded streamed discussion over server-sent events
    - **Directives**: `/project`, `/code`, `/debug`, `/review`, `/analyze`
    - **History**: Persisted messages, documents and project briefs
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)

# Include routers
app.include_router(discussion_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Chorus Discussion API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health():
    """Global health check."""
    return {"status": "healthy"}


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.chorus.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "3001")),
        reload=True,
    )
