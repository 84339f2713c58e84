"""Persistent chat history for `/api/chat`.

One flat thread per user, stored in `chat_messages`. The newest messages feed
the prompt; the history endpoint pages the same table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

USER = "USER"
ASSISTANT = "ASSISTANT"
_ALLOWED_ROLES = {USER, ASSISTANT}


async def append_message(
    connection: AsyncConnection,
    user_id: UUID,
    role: str,
    content: str,
) -> dict[str, Any]:
    """Store one user/assistant message and return the new row."""
    if role not in _ALLOWED_ROLES:
        raise ValueError(f"Unsupported message role: {role}")

    payload = content.strip()
    if not payload:
        raise ValueError("Message content cannot be empty")

    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            INSERT INTO chat_messages (content, role, user_id)
            VALUES (%s, %s::message_role, %s)
            RETURNING id, seq, content, role, created_at
            """,
            (payload, role, user_id),
        )
        row = await cursor.fetchone()

    return row


async def load_recent_messages(
    connection: AsyncConnection,
    user_id: UUID,
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Load the newest `limit` messages in chronological order."""
    if limit < 1:
        return []

    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT id, seq, content, role, created_at
            FROM chat_messages
            WHERE user_id = %s
            ORDER BY created_at DESC, seq DESC
            LIMIT %s
            """,
            (user_id, limit),
        )
        rows = await cursor.fetchall()

    return list(reversed(rows))


def serialize_message(row: dict[str, Any]) -> dict[str, Any]:
    created_at = row.get("created_at")
    return {
        "id": str(row["id"]),
        "content": row["content"],
        "role": str(row["role"]).lower(),
        "created_at": created_at.isoformat() if created_at is not None else None,
    }


async def list_messages(
    connection: AsyncConnection,
    user_id: UUID,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """History page for the chat UI: newest `limit` messages, oldest first."""
    rows = await load_recent_messages(connection, user_id, limit=limit)
    return [serialize_message(row) for row in rows]


async def clear_messages(connection: AsyncConnection, user_id: UUID) -> int:
    """Delete the user's whole thread; returns how many rows went away."""
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            DELETE FROM chat_messages
            WHERE user_id = %s
            """,
            (user_id,),
        )
        return cursor.rowcount
