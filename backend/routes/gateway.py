"""Gateway endpoints proxying raw chat requests to Anthropic.

Mounted without the /api prefix so both legacy paths are served as-is:
  POST /chat      {systemPrompt, userMessage}       → {response}
  POST /api/chat  {messages, character, context}    → {response}
"""

from fastapi import APIRouter, Depends, HTTPException

from backend import llm
from worldbuilding.orchestrator import ProviderOrchestrator

from .deps import get_orchestrator
from .models import GatewayChatBody, GatewayMessagesBody

router = APIRouter()

CHAT_MAX_TOKENS = 500
MESSAGES_MAX_TOKENS = 1000


def _trim(text: str) -> str:
    return text[:llm.MAX_USER_MESSAGE_CHARS]


@router.post("/chat")
async def chat(body: GatewayChatBody, orchestrator: ProviderOrchestrator = Depends(get_orchestrator)):
    """Single-turn chat with a caller-supplied system prompt."""
    if not isinstance(body.system_prompt, str) or not body.system_prompt \
            or not isinstance(body.user_message, str) or not body.user_message:
        raise HTTPException(400, "Missing systemPrompt or userMessage")
    settings = orchestrator.settings
    reply = await llm.generate(
        settings.anthropic_api_key,
        body.system_prompt,
        [{"role": "user", "content": _trim(body.user_message)}],
        CHAT_MAX_TOKENS,
        timeout=settings.request_timeout,
    )
    return {"response": reply}


@router.post("/api/chat")
async def chat_messages(
    body: GatewayMessagesBody,
    orchestrator: ProviderOrchestrator = Depends(get_orchestrator),
):
    """Multi-turn chat as a named character with optional free-text context."""
    if not isinstance(body.messages, list) or not body.messages \
            or not isinstance(body.character, str) or not body.character:
        raise HTTPException(400, "Messages and character are required")

    messages: list[dict[str, str]] = []
    for msg in body.messages:
        if not isinstance(msg, dict) or msg.get("role") not in ("user", "assistant") \
                or not isinstance(msg.get("content"), str):
            raise HTTPException(400, "Each message needs a role and text content")
        messages.append({"role": msg["role"], "content": _trim(msg["content"])})

    context = body.context if isinstance(body.context, str) else ""
    system = (
        f"You are {body.character}, a character in a roleplay game. Respond in "
        "character, using the following context and conversation history to "
        f"inform your response.\n\n{context}"
    )
    settings = orchestrator.settings
    reply = await llm.generate(
        settings.anthropic_api_key,
        system,
        messages,
        MESSAGES_MAX_TOKENS,
        timeout=settings.request_timeout,
    )
    return {"response": reply}
