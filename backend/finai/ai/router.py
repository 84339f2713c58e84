"""FastAPI router for the authenticated personal-finance advisor chat."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from finai.ai.gemini_client import GeminiClient, GeminiError, GeminiRequestError
from finai.ai.memory import (
    ASSISTANT,
    USER,
    append_message,
    clear_messages,
    list_messages,
    load_recent_messages,
)
from finai.ai.prompt import build_chat_prompt
from finai.auth import get_current_user_id
from finai.config import settings
from finai.database import get_db_connection
from finai.services.financial_context import get_user_financial_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatRequest(BaseModel):
    message: str | None = None


class ChatSendResponse(BaseModel):
    success: bool = True
    message: str
    user_message: str


class ChatMessageItem(BaseModel):
    id: str
    content: str
    role: str
    created_at: str | None


class ChatHistoryResponse(BaseModel):
    success: bool = True
    messages: list[ChatMessageItem] = Field(default_factory=list)


class ChatClearResponse(BaseModel):
    success: bool = True
    deleted: int


def _get_gemini_client() -> GeminiClient:
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_retries=settings.gemini_max_retries,
    )


def _validated_message(payload: ChatRequest) -> str:
    message_text = (payload.message or "").strip()
    if not message_text:
        raise HTTPException(status_code=400, detail="Message is required")
    if len(message_text) > settings.message_max_length:
        raise HTTPException(
            status_code=422,
            detail=f"Message must be at most {settings.message_max_length} characters",
        )
    return message_text


@router.post("", response_model=ChatSendResponse)
async def send_chat_message(
    message_text: str = Depends(_validated_message),
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
) -> ChatSendResponse:
    """
    Answer one user question with the user's finances as context.

    Example request:
    {"message": "What's my biggest expense category?"}

    Example response:
    {
      "success": true,
      "message": "**Dining** is your largest category this month ...",
      "user_message": "What's my biggest expense category?"
    }
    """
    if not settings.gemini_api_key:
        raise HTTPException(
            status_code=503,
            detail="AI assistant is unavailable because GEMINI_API_KEY is not configured.",
        )

    await append_message(connection, user_id, USER, message_text)

    context = await get_user_financial_context(connection, user_id)
    history = await load_recent_messages(
        connection,
        user_id,
        limit=settings.chat_history_limit,
    )
    prompt = build_chat_prompt(context, history, message_text)

    client = _get_gemini_client()
    try:
        reply = await client.generate_text(prompt)
    except GeminiRequestError as exc:
        logger.warning("Chat reply failed for user %s: status %s", user_id, exc.status_code)
        if exc.status_code == 429:
            raise HTTPException(status_code=503, detail="AI assistant is rate-limited right now. Try again shortly.") from exc
        raise HTTPException(status_code=502, detail="AI assistant request failed. Please try again.") from exc
    except GeminiError as exc:
        logger.warning("Chat reply unusable for user %s: %s", user_id, exc)
        raise HTTPException(status_code=502, detail="AI assistant response could not be processed.") from exc

    await append_message(connection, user_id, ASSISTANT, reply)
    logger.info("Chat reply stored for user %s", user_id)

    return ChatSendResponse(message=reply, user_message=message_text)


@router.get("", response_model=ChatHistoryResponse)
async def get_chat_history(
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
) -> ChatHistoryResponse:
    messages = await list_messages(connection, user_id, limit=settings.chat_page_limit)
    return ChatHistoryResponse(messages=[ChatMessageItem(**item) for item in messages])


@router.delete("", response_model=ChatClearResponse)
async def clear_chat_history(
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
) -> ChatClearResponse:
    deleted = await clear_messages(connection, user_id)
    logger.info("Cleared %d chat messages for user %s", deleted, user_id)
    return ChatClearResponse(deleted=deleted)
