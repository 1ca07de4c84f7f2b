"""Provider clients: HTTP connections to character-response backends.

The orchestrator talks to providers through one protocol:

    async def generate_character_response(
        character, user_message, conversation_history, options,
    ) -> CharacterResponse: ...

    async def is_available() -> bool: ...

Two implementations are provided:

    OllamaClient    locally hosted model server. Posts one flattened
                    prompt to POST /api/generate.
    TogetherClient  hosted chat-completion API with bearer auth. Posts the
                    structured prompt as a single user message to
                    POST /chat/completions.

Both raise a typed LLMError subclass on any failure. TogetherClient can be
switched to the legacy degrade-instead-of-raise behaviour with
`degrade_on_error=True`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from .models import Character, CharacterResponse, ChatMessage, GenerationOptions
from .prompts import DEFAULT_TOKEN_BUDGET, build_local_prompt, build_prompt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
PROBE_TIMEOUT = 2.0

OLLAMA = "ollama"
TOGETHER = "together"

APOLOGY = "I'm having trouble responding right now. Please try again."


# ---------------------------------------------------------------------------
# Protocol: every provider must match this shape
# ---------------------------------------------------------------------------

class CharacterLLM(Protocol):
    name: str

    async def generate_character_response(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage] = (),
        options: GenerationOptions | None = None,
    ) -> CharacterResponse: ...

    async def is_available(self) -> bool: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Base class for provider failures."""


class ConfigurationError(LLMError):
    """A provider is missing required configuration, e.g. its API key."""


class TransportError(LLMError):
    """The provider could not be reached."""


class ProviderTimeoutError(LLMError):
    """The provider did not answer before the deadline."""


class UpstreamError(LLMError):
    """The provider answered with a non-success status or an unusable body."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class BothProvidersFailedError(LLMError):
    """The preferred provider and the fallback both failed."""

    def __init__(self, primary: Exception, fallback: Exception) -> None:
        super().__init__(f"Both services failed: {primary} and {fallback}")
        self.primary = primary
        self.fallback = fallback


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------

class _HttpProvider:
    name = ""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT,
                 budget: int = DEFAULT_TOKEN_BUDGET) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._budget = budget

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        logger.debug("%s request url=%s", self.name, url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"{self.name} timed out after {self._timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            text = e.response.text
            logger.error("%s returned HTTP %d: %s", self.name, status, text)
            raise UpstreamError(
                f"{self.name} API error ({status})", status=status, body=text
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"Cannot connect to {self.name} at {self.base_url}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(
                f"Unexpected response format from {self.name}", status=resp.status_code
            ) from e
        if not isinstance(data, dict):
            raise UpstreamError(
                f"Unexpected response format from {self.name}", status=resp.status_code
            )
        return data


# ---------------------------------------------------------------------------
# OllamaClient: local model server
# ---------------------------------------------------------------------------

class OllamaClient(_HttpProvider):
    """Client for a local Ollama server.

    Args:
        base_url: Server URL, e.g. "http://localhost:11434".
        model:    Default model name; overridden by options.model.
        timeout:  HTTP timeout in seconds for generation calls.
    """

    name = OLLAMA

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "mistral",
                 timeout: float = DEFAULT_TIMEOUT, budget: int = DEFAULT_TOKEN_BUDGET) -> None:
        super().__init__(base_url, timeout, budget)
        self.model = model

    def _build_request(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage],
        options: GenerationOptions,
    ) -> dict[str, Any]:
        return {
            "model": options.model or self.model,
            "prompt": build_local_prompt(
                character, user_message, conversation_history, options, self._budget
            ),
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
                "top_p": options.top_p,
            },
        }

    async def generate_character_response(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage] = (),
        options: GenerationOptions | None = None,
    ) -> CharacterResponse:
        options = options or GenerationOptions()
        body = self._build_request(character, user_message, conversation_history, options)
        data = await self._post(f"{self.base_url}/api/generate", body)
        text = data.get("response")
        if not isinstance(text, str):
            raise UpstreamError("Unexpected response format from ollama")
        return CharacterResponse(response=text, source=self.name)

    async def list_models(self) -> list[str]:
        """Names of the models the server has pulled (GET /api/tags)."""
        try:
            async with httpx.AsyncClient(timeout=PROBE_TIMEOUT) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError("ollama probe timed out") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"ollama API error ({e.response.status_code})",
                status=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"Cannot connect to ollama at {self.base_url}") from e
        try:
            return [m.get("name", "") for m in resp.json().get("models", [])]
        except (ValueError, AttributeError, TypeError) as e:
            raise UpstreamError("Unexpected response format from ollama") from e

    async def is_available(self) -> bool:
        try:
            await self.list_models()
        except LLMError as e:
            logger.warning("ollama service not available: %s", e)
            return False
        return True


# ---------------------------------------------------------------------------
# TogetherClient: hosted chat-completion API
# ---------------------------------------------------------------------------

class TogetherClient(_HttpProvider):
    """Client for the Together AI chat-completions API.

    Args:
        api_key:          Bearer token. Calls fail with ConfigurationError when empty.
        base_url:         API root, default "https://api.together.xyz/v1".
        model:            Default model; overridden by options.model.
        timeout:          HTTP timeout in seconds.
        degrade_on_error: Return an apology response instead of raising.
    """

    name = TOGETHER

    def __init__(self, api_key: str = "", base_url: str = "https://api.together.xyz/v1",
                 model: str = "mistralai/Mistral-7B-Instruct-v0.2",
                 timeout: float = DEFAULT_TIMEOUT, budget: int = DEFAULT_TOKEN_BUDGET,
                 degrade_on_error: bool = False) -> None:
        super().__init__(base_url, timeout, budget)
        self.api_key = api_key
        self.model = model
        self.degrade_on_error = degrade_on_error

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_request(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage],
        options: GenerationOptions,
    ) -> dict[str, Any]:
        prompt = build_prompt(character, user_message, conversation_history, options, self._budget)
        return {
            "model": options.model or self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "top_p": options.top_p,
        }

    async def _generate(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage],
        options: GenerationOptions,
    ) -> CharacterResponse:
        if not self.api_key:
            raise ConfigurationError("Together AI API key is not configured")
        body = self._build_request(character, user_message, conversation_history, options)
        data = await self._post(f"{self.base_url}/chat/completions", body)
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError("Unexpected response format from together") from e
        if not isinstance(text, str):
            raise UpstreamError("Unexpected response format from together")
        return CharacterResponse(response=text, source=self.name)

    async def generate_character_response(
        self,
        character: Character,
        user_message: str,
        conversation_history: Sequence[ChatMessage] = (),
        options: GenerationOptions | None = None,
    ) -> CharacterResponse:
        options = options or GenerationOptions()
        try:
            return await self._generate(character, user_message, conversation_history, options)
        except LLMError as e:
            if not self.degrade_on_error:
                raise
            logger.error("together failed, returning degraded response: %s", e)
            return CharacterResponse(response=APOLOGY, source=f"{self.name} (error)", error=str(e))

    async def is_available(self) -> bool:
        return bool(self.api_key)
