"""Character chat and memory endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from worldbuilding.llm import LLMError, ProviderTimeoutError
from worldbuilding.orchestrator import ProviderOrchestrator
from worldbuilding.ratelimit import RateLimitExceeded
from worldbuilding.retry import user_message_for, with_retries

from .deps import get_orchestrator
from .models import ChatBody, CreateMemory

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/characters/chat")
async def chat(body: ChatBody, orchestrator: ProviderOrchestrator = Depends(get_orchestrator)):
    """Generate an in-character reply, with fallback and memory."""
    settings = orchestrator.settings
    try:
        return await with_retries(
            lambda: orchestrator.chat(body.character, body.message, body.history, body.options),
            retries=settings.chat_retries,
            delay=settings.retry_delay,
        )
    except RateLimitExceeded as e:
        raise HTTPException(429, user_message_for(e))
    except ProviderTimeoutError as e:
        logger.error("character chat timed out: %s", e)
        raise HTTPException(504, user_message_for(e))
    except LLMError as e:
        logger.error("character chat failed: %s", e)
        raise HTTPException(502, user_message_for(e))


@router.get("/characters/{character_id}/memories")
async def list_memories(
    character_id: str,
    q: str | None = None,
    limit: int = 5,
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
):
    """List a character's memories, or the ones relevant to `q`."""
    if q:
        return orchestrator.memory.find_relevant_memories(character_id, q, limit)
    return orchestrator.memory.get_memories(character_id)


@router.post("/characters/{character_id}/memories", status_code=201)
async def create_memory(
    character_id: str,
    body: CreateMemory,
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
):
    """Store a memory for a character."""
    if not body.content.strip():
        raise HTTPException(400, "Memory content is required")
    return orchestrator.memory.add_memory(character_id, body.content, body.type, body.importance)
