"""
Turn Store Implementations.

PostgreSQL (asyncpg) and in-memory adapters for the ITurnStore port:
the append-only message log plus the documents and projects tables the
orchestrators read from.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import asyncpg

from ...core.exceptions import PersistenceError
from ..domain.entities import RecentDocument, Turn, TurnRole
from ..domain.ports import ITurnStore

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS messages (
        id SERIAL PRIMARY KEY,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        provider TEXT,
        timestamp TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        requirements TEXT,
        status TEXT DEFAULT 'active',
        created_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id SERIAL PRIMARY KEY,
        filename TEXT NOT NULL,
        original_name TEXT NOT NULL,
        content TEXT NOT NULL,
        file_type TEXT,
        mime_type TEXT,
        file_size INTEGER,
        created_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
)


class IAsyncDBPool(Protocol):
    """Protocol for async database pool."""

    def acquire(self): ...
    async def execute(self, query: str, *args) -> str: ...
    async def fetch(self, query: str, *args) -> list[Any]: ...
    async def fetchval(self, query: str, *args) -> Any: ...
    async def close(self) -> None: ...


async def create_pool(
    database_url: str,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float = 60.0,
) -> asyncpg.Pool:
    """Create the asyncpg connection pool.

    Raises:
        PersistenceError: If the pool cannot be created
    """
    try:
        pool = await asyncpg.create_pool(
            database_url,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )
    except (asyncpg.PostgresError, OSError) as e:
        raise PersistenceError(
            f"Failed to create database pool: {e}",
            operation="connect",
            cause=e,
        )

    logger.info(f"Database pool created (min={min_size}, max={max_size})")
    return pool


def _row_to_turn(row: Any) -> Turn:
    return Turn(
        id=row["id"],
        role=TurnRole(row["role"]),
        content=row["content"],
        provider=row["provider"],
        timestamp=row["timestamp"],
    )


class PostgresTurnStore(ITurnStore):
    """PostgreSQL-backed turn store.

    Usage:
        pool = await create_pool(os.environ["DATABASE_URL"])
        store = PostgresTurnStore(pool)
        await store.initialize()

        turn_id = await store.append_turn(TurnRole.USER, "hello", "user")
        latest = await store.recent_turns(8, roles=(TurnRole.USER, TurnRole.ASSISTANT))
    """

    def __init__(self, db_pool: IAsyncDBPool):
        """Initialize the store.

        Args:
            db_pool: Async database connection pool
        """
        self.db = db_pool

    async def _run(self, operation: str, coro):
        """Await a pool call, mapping driver failures to PersistenceError."""
        try:
            return await coro
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            raise PersistenceError(
                f"Database {operation} failed: {e}",
                operation=operation,
                cause=e,
            )

    async def initialize(self) -> None:
        async with self.db.acquire() as conn:
            for statement in SCHEMA:
                await self._run("initialize", conn.execute(statement))
        logger.info("Database tables initialized successfully")

    async def close(self) -> None:
        await self.db.close()
        logger.info("Database pool closed")

    async def append_turn(
        self, role: TurnRole, content: str, provider_id: Optional[str]
    ) -> int:
        return await self._run(
            "append_turn",
            self.db.fetchval(
                """
                INSERT INTO messages (role, content, provider)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                role.value,
                content,
                provider_id,
            ),
        )

    async def list_turns(self) -> list[Turn]:
        rows = await self._run(
            "list_turns",
            self.db.fetch(
                "SELECT id, role, content, provider, timestamp FROM messages ORDER BY timestamp, id"
            ),
        )
        return [_row_to_turn(row) for row in rows]

    async def recent_turns(
        self, limit: int, roles: Optional[tuple[TurnRole, ...]] = None
    ) -> list[Turn]:
        if roles:
            query = self.db.fetch(
                """
                SELECT id, role, content, provider, timestamp
                FROM messages
                WHERE role = ANY($1::text[])
                ORDER BY timestamp DESC, id DESC
                LIMIT $2
                """,
                [r.value for r in roles],
                limit,
            )
        else:
            query = self.db.fetch(
                """
                SELECT id, role, content, provider, timestamp
                FROM messages
                ORDER BY timestamp DESC, id DESC
                LIMIT $1
                """,
                limit,
            )
        rows = await self._run("recent_turns", query)
        return [_row_to_turn(row) for row in rows]

    async def recent_documents(self, limit: int) -> list[RecentDocument]:
        rows = await self._run(
            "recent_documents",
            self.db.fetch(
                """
                SELECT original_name, content, file_type
                FROM documents
                ORDER BY created_at DESC, id DESC
                LIMIT $1
                """,
                limit,
            ),
        )
        return [
            RecentDocument(name=row["original_name"], content=row["content"], type=row["file_type"])
            for row in rows
        ]

    async def list_documents(self) -> list[dict[str, Any]]:
        rows = await self._run(
            "list_documents",
            self.db.fetch(
                """
                SELECT id, original_name, file_type, file_size, created_at
                FROM documents
                ORDER BY created_at DESC, id DESC
                """
            ),
        )
        return [dict(row) for row in rows]

    async def create_project(
        self, name: str, description: Optional[str], requirements: Optional[str]
    ) -> int:
        project_id = await self._run(
            "create_project",
            self.db.fetchval(
                """
                INSERT INTO projects (name, description, requirements, status)
                VALUES ($1, $2, $3, 'active')
                RETURNING id
                """,
                name,
                description,
                requirements,
            ),
        )
        logger.info(f"Created project {project_id}: {name}")
        return project_id

    async def list_projects(self) -> list[dict[str, Any]]:
        rows = await self._run(
            "list_projects",
            self.db.fetch(
                """
                SELECT id, name, description, requirements, status, created_at
                FROM projects
                ORDER BY created_at DESC, id DESC
                """
            ),
        )
        return [dict(row) for row in rows]


class InMemoryTurnStore(ITurnStore):
    """Process-local turn store used when no database is configured.

    Usage:
        store = InMemoryTurnStore()
        await store.append_turn(TurnRole.USER, "hello", "user")
        store.add_document("notes.txt", "Some extracted text", "text")
    """

    def __init__(self):
        self._turns: list[Turn] = []
        self._documents: list[dict[str, Any]] = []
        self._projects: list[dict[str, Any]] = []
        self._turn_ids = itertools.count(1)
        self._document_ids = itertools.count(1)
        self._project_ids = itertools.count(1)

    async def append_turn(
        self, role: TurnRole, content: str, provider_id: Optional[str]
    ) -> int:
        turn_id = next(self._turn_ids)
        self._turns.append(
            Turn(role=role, content=content, provider=provider_id, id=turn_id)
        )
        return turn_id

    async def list_turns(self) -> list[Turn]:
        return list(self._turns)

    async def recent_turns(
        self, limit: int, roles: Optional[tuple[TurnRole, ...]] = None
    ) -> list[Turn]:
        turns = [t for t in reversed(self._turns) if not roles or t.role in roles]
        return turns[:limit]

    def add_document(
        self,
        name: str,
        content: str,
        file_type: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> int:
        """Insert an already-extracted document."""
        document_id = next(self._document_ids)
        self._documents.append({
            "id": document_id,
            "filename": name,
            "original_name": name,
            "content": content,
            "file_type": file_type,
            "mime_type": mime_type,
            "file_size": len(content.encode("utf-8")),
            "created_at": datetime.utcnow(),
        })
        return document_id

    async def recent_documents(self, limit: int) -> list[RecentDocument]:
        return [
            RecentDocument(name=d["original_name"], content=d["content"], type=d["file_type"])
            for d in reversed(self._documents[-limit:] if limit > 0 else [])
        ]

    async def list_documents(self) -> list[dict[str, Any]]:
        keys = ("id", "original_name", "file_type", "file_size", "created_at")
        return [{k: d[k] for k in keys} for d in reversed(self._documents)]

    async def create_project(
        self, name: str, description: Optional[str], requirements: Optional[str]
    ) -> int:
        project_id = next(self._project_ids)
        self._projects.append({
            "id": project_id,
            "name": name,
            "description": description,
            "requirements": requirements,
            "status": "active",
            "created_at": datetime.utcnow(),
        })
        return project_id

    async def list_projects(self) -> list[dict[str, Any]]:
        return list(reversed(self._projects))
