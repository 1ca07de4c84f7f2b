"""Anthropic messages client used by the /chat gateway endpoints."""

import logging

import httpx
from fastapi import HTTPException

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
MODEL = "claude-3-opus-20240229"
TEMPERATURE = 0.7

MAX_SYSTEM_PROMPT_CHARS = 4000
MAX_USER_MESSAGE_CHARS = 500


async def generate(
    api_key: str,
    system: str,
    messages: list[dict[str, str]],
    max_tokens: int,
    timeout: float = 30.0,
) -> str:
    """Send a messages request to Anthropic and return the reply text.

    Calls POST {ANTHROPIC_URL} with the system prompt and message list.
    Failures become HTTPExceptions: 500 for a missing key or upstream error,
    504 for a timeout, 431 passed through as-is.
    """
    if not api_key:
        logger.error("ANTHROPIC_API_KEY is not configured")
        raise HTTPException(500, "AI service is not configured")

    body = {
        "model": MODEL,
        "system": system[:MAX_SYSTEM_PROMPT_CHARS],
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": TEMPERATURE,
    }
    headers = {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(ANTHROPIC_URL, json=body, headers=headers)
            resp.raise_for_status()
    except httpx.TimeoutException:
        raise HTTPException(504, "Request timed out")
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error("Anthropic API returned %d: %s", status, e.response.text)
        if status == 431:
            raise HTTPException(431, "Request header fields too large")
        raise HTTPException(500, "Failed to get response from AI service")
    except httpx.TransportError as e:
        logger.error("Cannot reach Anthropic API: %s", e)
        raise HTTPException(500, "Failed to get response from AI service")

    try:
        text = resp.json()["content"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError):
        text = None
    if not isinstance(text, str):
        logger.error("Unexpected response format from Anthropic: %s", resp.text)
        raise HTTPException(500, "Failed to get response from AI service")
    return text
