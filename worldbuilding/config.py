"""Provider configuration.

Settings are read from the environment (a `.env` file is loaded by the app
via python-dotenv) exactly once, into a ProviderSettings object that is passed
to the orchestrator. Nothing inside the core reads os.environ on its own.

Environment variables:

    APP_ENV                 "production" selects the hosted API by default
                            and disables fallback. Anything else is treated
                            as development.
    PREFERRED_AI_SERVICE    "ollama" | "together"; overrides the default.
    ALLOW_FALLBACK          "true" enables fallback even in production.
    OLLAMA_BASE_URL, OLLAMA_MODEL
    TOGETHER_API_KEY, TOGETHER_BASE_URL, TOGETHER_MODEL, TOGETHER_DEGRADE
    ANTHROPIC_API_KEY       credential for the /chat gateway endpoints.
    AI_REQUEST_TIMEOUT      seconds, default 30.
"""

import os
from typing import Literal

from pydantic import BaseModel

ServiceName = Literal["ollama", "together"]

_TRUE = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in _TRUE


class ProviderSettings(BaseModel):
    environment: str = "development"
    preferred_service: ServiceName | None = None
    allow_fallback: bool | None = None

    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "mistral"

    together_api_key: str = ""
    together_base_url: str = "https://api.together.xyz/v1"
    together_model: str = "mistralai/Mistral-7B-Instruct-v0.2"
    together_degrade_on_error: bool = False

    anthropic_api_key: str = ""

    request_timeout: float = 30.0
    token_budget: int = 1500
    rate_limit_calls: int = 10
    rate_limit_window_ms: int = 60_000
    chat_retries: int = 2
    retry_delay: float = 1.0

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def default_service(self) -> ServiceName:
        return "together" if self.is_production else "ollama"

    @property
    def fallback_allowed(self) -> bool:
        if self.allow_fallback is not None:
            return self.allow_fallback
        return not self.is_production

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        fields: dict = {
            "environment": os.getenv("APP_ENV", "development"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            "ollama_model": os.getenv("OLLAMA_MODEL", "mistral"),
            "together_api_key": os.getenv("TOGETHER_API_KEY", ""),
            "together_base_url": os.getenv("TOGETHER_BASE_URL", "https://api.together.xyz/v1"),
            "together_model": os.getenv("TOGETHER_MODEL", "mistralai/Mistral-7B-Instruct-v0.2"),
            "together_degrade_on_error": bool(_env_flag("TOGETHER_DEGRADE")),
            "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY", ""),
            "request_timeout": float(os.getenv("AI_REQUEST_TIMEOUT", "30")),
            "allow_fallback": _env_flag("ALLOW_FALLBACK"),
        }
        preferred = os.getenv("PREFERRED_AI_SERVICE", "")
        if preferred in ("ollama", "together"):
            fields["preferred_service"] = preferred
        return cls(**fields)
