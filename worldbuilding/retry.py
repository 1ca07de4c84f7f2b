"""Retry wrapper and user-facing error messages for AI calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .llm import (
    BothProvidersFailedError,
    ConfigurationError,
    ProviderTimeoutError,
    TransportError,
    UpstreamError,
)
from .ratelimit import RateLimitExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 2
DEFAULT_DELAY = 1.0


def is_transient(exc: BaseException) -> bool:
    """Failures worth retrying: network, timeouts, 5xx/429, double failures."""
    if isinstance(exc, (TransportError, ProviderTimeoutError, BothProvidersFailedError)):
        return True
    if isinstance(exc, UpstreamError):
        return exc.status is None or exc.status >= 500 or exc.status == 429
    return False


async def with_retries(
    call: Callable[[], Awaitable[T]],
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_DELAY,
) -> T:
    """Await `call()`, retrying transient failures up to `retries` times.

    The delay between attempts is fixed. Non-transient errors propagate
    immediately.
    """
    attempt = 0
    while True:
        try:
            return await call()
        except Exception as e:
            if attempt >= retries or not is_transient(e):
                raise
            attempt += 1
            logger.info("retrying AI call (%d/%d) after: %s", attempt, retries, e)
            await asyncio.sleep(delay)


def user_message_for(exc: BaseException) -> str:
    """Short, non-technical text for showing a failure to a user."""
    if isinstance(exc, RateLimitExceeded):
        return "Too many messages at once. Please wait a moment and try again."
    if isinstance(exc, ProviderTimeoutError):
        return "The character took too long to respond. Please try again."
    if isinstance(exc, TransportError):
        return "No response from character. Check your network connection."
    if isinstance(exc, ConfigurationError):
        return "Access denied. Check API configurations."
    if isinstance(exc, BothProvidersFailedError):
        return "No AI service is responding right now. Please try again later."
    if isinstance(exc, UpstreamError):
        if exc.status == 500:
            return "Server error. Our characters are having a momentary existential crisis."
        if exc.status == 403:
            return "Access denied. Check API configurations."
        if exc.status == 404:
            return "Character communication channel not found."
        if exc.status is not None:
            return f"Unexpected error: {exc.status}"
    return "Failed to initiate character communication."
