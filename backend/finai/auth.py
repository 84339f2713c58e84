"""Bearer-token verification and user resolution for the chat API.

Tokens are minted by the external identity provider; this service only
verifies them and maps the subject onto a local `users` row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from .config import settings
from .database import get_db_connection

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

http_bearer = HTTPBearer(auto_error=False)


def _decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc


async def get_current_subject(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> str:
    """Return the identity-provider user id carried by the bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = _decode_token(credentials.credentials)

    subject = str(payload.get("sub") or "").strip()
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    return subject


async def find_user_id(connection: AsyncConnection, clerk_user_id: str) -> UUID | None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT id
            FROM users
            WHERE clerk_user_id = %s
            """,
            (clerk_user_id,),
        )
        row = await cursor.fetchone()

    if row is None:
        return None
    return row["id"]


async def get_current_user_id(
    subject: str = Depends(get_current_subject),
    connection: AsyncConnection = Depends(get_db_connection),
) -> UUID:
    user_id = await find_user_id(connection, subject)
    if user_id is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user_id
