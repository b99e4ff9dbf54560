"""PostgreSQL implementation of MessageStore using asyncpg."""

from __future__ import annotations

import json
from typing import Any

from triprelay.models.enums import MessageType
from triprelay.models.identity import UserIdentity
from triprelay.models.message import Message
from triprelay.store.base import MessageStore

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS messages (
    id BIGSERIAL PRIMARY KEY,
    session_id TEXT NOT NULL,
    sender_id TEXT NOT NULL,
    sender_name TEXT NOT NULL,
    sender_role TEXT NOT NULL,
    message_type TEXT NOT NULL DEFAULT 'text',
    body TEXT NOT NULL DEFAULT '',
    metadata JSONB,
    read_by TEXT[] NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_messages_session_id ON messages(session_id, id);
"""

_COLUMNS = (
    "id, session_id, sender_id, sender_name, sender_role, message_type, "
    "body, metadata, read_by, created_at"
)


def _row_to_message(row: Any) -> Message:
    data = dict(row)
    if isinstance(data.get("metadata"), str):
        data["metadata"] = json.loads(data["metadata"])
    data["read_by"] = list(data.get("read_by") or [])
    return Message.model_validate(data)


class PostgresMessageStore(MessageStore):
    """PostgreSQL-backed message store using asyncpg."""

    def __init__(
        self,
        dsn: str | None = None,
        pool: Any = None,
    ) -> None:
        try:
            import asyncpg as _asyncpg
        except ImportError as exc:
            raise ImportError(
                "asyncpg is required for PostgresMessageStore. "
                "Install it with: pip install triprelay[postgres]"
            ) from exc
        self._asyncpg = _asyncpg
        self._dsn = dsn
        self._pool = pool
        self._owns_pool = pool is None

    async def init(self, min_size: int = 2, max_size: int = 10) -> None:
        """Create the connection pool (if needed) and ensure schema exists."""
        if self._pool is None:
            self._pool = await self._asyncpg.create_pool(
                self._dsn,
                min_size=min_size,
                max_size=max_size,
            )
        async with self._pool.acquire() as conn:
            await conn.execute(_SCHEMA)

    async def close(self) -> None:
        """Release the connection pool if we own it."""
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> PostgresMessageStore:
        await self.init()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def persist(
        self,
        session_id: str,
        sender: UserIdentity,
        body: str,
        message_type: MessageType,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "INSERT INTO messages "
                "(session_id, sender_id, sender_name, sender_role, message_type, body, metadata) "
                f"VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb) RETURNING {_COLUMNS}",
                session_id,
                sender.user_id,
                sender.display_name,
                sender.role,
                message_type.value,
                body,
                json.dumps(metadata) if metadata is not None else None,
            )
        return _row_to_message(row)

    async def read_history(
        self, session_id: str, limit: int = 50, before_id: int | None = None
    ) -> list[Message]:
        if limit <= 0:
            return []
        if before_id is None:
            query = (
                f"SELECT {_COLUMNS} FROM messages WHERE session_id = $1 "
                "ORDER BY id DESC LIMIT $2"
            )
            params: list[Any] = [session_id, limit]
        else:
            query = (
                f"SELECT {_COLUMNS} FROM messages WHERE session_id = $1 AND id < $3 "
                "ORDER BY id DESC LIMIT $2"
            )
            params = [session_id, limit, before_id]
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [_row_to_message(r) for r in reversed(rows)]

    async def get_message(self, message_id: int) -> Message | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM messages WHERE id = $1", message_id
            )
        if row is None:
            return None
        return _row_to_message(row)

    async def add_reader(self, message_id: int, user_id: str) -> bool:
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                "UPDATE messages SET read_by = array_append(read_by, $2) "
                "WHERE id = $1 AND NOT ($2 = ANY(read_by))",
                message_id,
                user_id,
            )
        return bool(tag == "UPDATE 1")

    async def unread_count(self, session_id: str, user_id: str) -> int:
        async with self._pool.acquire() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM messages "
                "WHERE session_id = $1 AND sender_id <> $2 AND NOT ($2 = ANY(read_by))",
                session_id,
                user_id,
            )
        return int(count or 0)
