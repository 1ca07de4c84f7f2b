"""Provider orchestrator: one character reply end-to-end.

Call flow for generate_character_response():
  1. Rate-limit gate (raises RateLimitExceeded when the window is full).
  2. Call the preferred provider.
  3. On LLMError, if fallback is allowed, call the alternate provider once.
     Both failing raises BothProvidersFailedError naming both causes.
     Without fallback the original error propagates unchanged.
  4. Return the provider's CharacterResponse verbatim, `source` included.

chat() wraps this with memory: relevant memories are injected into the
prompt before the call and the exchange is recorded after it.

The orchestrator owns the only shared mutable state (preferred provider,
rate-limit window, memory store). Build one per process and pass it around.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from .config import ProviderSettings
from .llm import (
    BothProvidersFailedError,
    CharacterLLM,
    LLMError,
    OllamaClient,
    TogetherClient,
)
from .memory import MemoryStore, format_memories
from .models import Character, CharacterResponse, ChatMessage, GenerationOptions
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)


def build_providers(settings: ProviderSettings) -> dict[str, CharacterLLM]:
    """Construct the two standard providers from settings."""
    return {
        "ollama": OllamaClient(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.request_timeout,
            budget=settings.token_budget,
        ),
        "together": TogetherClient(
            api_key=settings.together_api_key,
            base_url=settings.together_base_url,
            model=settings.together_model,
            timeout=settings.request_timeout,
            budget=settings.token_budget,
            degrade_on_error=settings.together_degrade_on_error,
        ),
    }


class ProviderOrchestrator:
    def __init__(
        self,
        settings: ProviderSettings | None = None,
        providers: Mapping[str, CharacterLLM] | None = None,
        rate_limiter: RateLimiter | None = None,
        memory: MemoryStore | None = None,
    ) -> None:
        self.settings = settings or ProviderSettings()
        self._providers = dict(providers) if providers is not None else build_providers(self.settings)
        if len(self._providers) != 2:
            raise ValueError("Exactly two providers are required for fallback")
        self.rate_limiter = rate_limiter or RateLimiter(
            self.settings.rate_limit_calls, self.settings.rate_limit_window_ms
        )
        self.memory = memory if memory is not None else MemoryStore()
        self._lock = threading.Lock()

        preferred = self.settings.preferred_service or self.settings.default_service
        if preferred not in self._providers:
            preferred = next(iter(self._providers))
        self._preferred = preferred
        logger.info("provider orchestrator initialized with preferred service: %s", preferred)

    # ------------------------------------------------------------------
    # Provider selection
    # ------------------------------------------------------------------

    @property
    def services(self) -> list[str]:
        return list(self._providers)

    @property
    def preferred_service(self) -> str:
        return self._preferred

    def alternate_service(self, name: str | None = None) -> str:
        name = name or self._preferred
        return next(n for n in self._providers if n != name)

    def set_preferred_service(self, name: str) -> bool:
        """Switch the preferred provider. Unknown names are rejected."""
        if name not in self._providers:
            return False
        with self._lock:
            self._preferred = name
        logger.info("switched to %s service", name)
        return True

    def get_provider(self, name: str | None = None) -> CharacterLLM:
        return self._providers[name or self._preferred]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_character_response(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage] = (),
        options: GenerationOptions | None = None,
    ) -> CharacterResponse:
        self.rate_limiter.acquire()

        primary_name = self._preferred
        primary = self._providers[primary_name]
        try:
            return await primary.generate_character_response(
                character, user_message, conversation_history, options
            )
        except LLMError as e:
            logger.warning("error with %s service: %s", primary_name, e)
            if not self.settings.fallback_allowed:
                raise
            fallback_name = self.alternate_service(primary_name)
            logger.info("falling back to %s service", fallback_name)
            try:
                return await self._providers[fallback_name].generate_character_response(
                    character, user_message, conversation_history, options
                )
            except LLMError as fallback_error:
                logger.error("fallback service also failed: %s", fallback_error)
                raise BothProvidersFailedError(e, fallback_error) from fallback_error

    async def chat(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage] = (),
        options: GenerationOptions | None = None,
    ) -> CharacterResponse:
        """Generate a reply with memory recall and recording.

        Memories are only recalled outside campaigns; campaign prompts carry
        their own event log.
        """
        options = options or GenerationOptions()
        if character.id and not options.campaign_id and not options.memories:
            relevant = self.memory.find_relevant_memories(character.id, user_message)
            if relevant:
                options = options.model_copy(update={"memories": format_memories(relevant)})

        result = await self.generate_character_response(
            character, user_message, conversation_history, options
        )

        if character.id and result.error is None:
            self.memory.process_conversation(character.id, [
                ChatMessage(sender="user", text=user_message),
                ChatMessage(sender="character", text=result.response),
            ])
        return result

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def is_service_available(self, name: str | None = None) -> bool:
        provider = self._providers.get(name or self._preferred)
        if provider is None:
            return False
        return await provider.is_available()

    async def initialize(self) -> dict[str, Any]:
        """Make sure the preferred provider is usable, switching if needed."""
        current = self._preferred
        if await self.is_service_available(current):
            return {"success": True, "service": current}

        alternative = self.alternate_service(current)
        logger.warning("%s service not available, trying %s", current, alternative)
        if await self.is_service_available(alternative):
            self.set_preferred_service(alternative)
            return {
                "success": True,
                "service": alternative,
                "message": f"Switched to {alternative}",
            }
        return {
            "success": False,
            "message": "No AI service available. Please check your configuration.",
        }
