"""
Multi-provider completion client with rate limiting.

The pipeline only needs `complete(prompt) -> str`: plain text in, plain text
out, no structured-output or function-calling contract. Any object with that
method satisfies CompletionClient (tests use a stub).

Supports:
- Groq (llama-3.3-70b-versatile, llama3-70b-8192, etc.) via its OpenAI-compatible API
- OpenAI (gpt-4o, gpt-4o-mini, etc.)
- Anthropic (claude-sonnet-4, claude-3-haiku, etc.)
- Google (gemini-2.0-flash, gemini-2.5-pro, etc.)

Usage:
    client = LLMCompletionClient(model="llama3-70b")
    reply = client.complete(prompt)

Provider failures are raised as UpstreamError. Retries are left to the
caller; SDK-level retries default to 0.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from ..errors import ConfigurationError, UpstreamError
from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


@runtime_checkable
class CompletionClient(Protocol):
    """Anything that turns a prompt into a free-form text reply."""

    def complete(self, prompt: str) -> str:
        ...


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GROQ = "groq"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


# Provider-specific model mappings
PROVIDER_MODELS = {
    LLMProvider.GROQ: [
        "llama-3.3-70b-versatile",
        "llama-3.1-8b-instant",
        "llama3-70b-8192",
        "mixtral-8x7b-32768",
    ],
    LLMProvider.OPENAI: [
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
    ],
    LLMProvider.ANTHROPIC: [
        "claude-sonnet-4-20250514",
        "claude-haiku-4-5-20251001",
        "claude-3-haiku-20240307",
    ],
    LLMProvider.GOOGLE: [
        "gemini-2.0-flash",
        "gemini-2.5-flash",
        "gemini-2.5-pro",
    ],
}

# Prefixes used for auto-detection
PROVIDER_PREFIXES = {
    LLMProvider.GROQ: ("llama", "mixtral", "gemma"),
    LLMProvider.OPENAI: ("gpt", "o1", "o3"),
    LLMProvider.ANTHROPIC: ("claude",),
    LLMProvider.GOOGLE: ("gemini",),
}

# Model aliases for convenience
MODEL_ALIASES = {
    "llama3-70b": "llama-3.3-70b-versatile",
    "llama-fast": "llama-3.1-8b-instant",
    "claude-sonnet": "claude-sonnet-4-20250514",
    "claude-haiku": "claude-haiku-4-5-20251001",
    "gemini-flash": "gemini-2.0-flash",
    "gemini-pro": "gemini-2.5-pro",
}

API_KEY_ENV_VARS = {
    LLMProvider.GROQ: ("GROQ_API_KEY",),
    LLMProvider.OPENAI: ("OPENAI_API_KEY",),
    LLMProvider.ANTHROPIC: ("ANTHROPIC_API_KEY",),
    LLMProvider.GOOGLE: ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
}

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama3-70b"


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""
    requests_per_minute: Optional[int] = None  # Max requests per minute (None = no limit)
    delay_between_calls: float = 0.0  # Fixed delay between API calls (seconds)
    max_retries: int = 0  # Passed to the SDK; retry policy belongs to the caller

    def get_delay(self) -> float:
        """Calculate delay to apply between calls."""
        if self.delay_between_calls > 0:
            return self.delay_between_calls
        if self.requests_per_minute and self.requests_per_minute > 0:
            return 60.0 / self.requests_per_minute
        return 0.0


class RateLimitedMixin:
    """Mixin to add call pacing to any client."""

    _last_call_time: float = 0.0
    _rate_limit_config: Optional[RateLimitConfig] = None

    def _apply_rate_limit(self):
        """Sleep if the previous call was too recent."""
        if not self._rate_limit_config:
            return

        delay = self._rate_limit_config.get_delay()
        if delay <= 0:
            return

        elapsed = time.time() - self._last_call_time
        if elapsed < delay:
            sleep_time = delay - elapsed
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
            time.sleep(sleep_time)

        self._last_call_time = time.time()


def resolve_model_name(model: str) -> str:
    """Resolve model alias to full model name."""
    return MODEL_ALIASES.get(model, model)


def detect_provider(model: str) -> LLMProvider:
    """
    Auto-detect provider from model name.

    Args:
        model: Model name or alias

    Returns:
        Detected LLMProvider (Groq for unknown models)
    """
    resolved_model = resolve_model_name(model).lower()
    for provider, prefixes in PROVIDER_PREFIXES.items():
        if resolved_model.startswith(prefixes):
            return provider

    logger.warning(f"Could not detect provider for model '{model}', defaulting to Groq")
    return LLMProvider.GROQ


def get_api_key(provider: LLMProvider, api_key: Optional[str] = None) -> str:
    """
    API key from the argument or the provider's environment variables.

    Raises:
        ConfigurationError: If no key is available
    """
    if api_key:
        return api_key
    for env_var in API_KEY_ENV_VARS[provider]:
        value = os.environ.get(env_var)
        if value:
            return value
    names = " or ".join(API_KEY_ENV_VARS[provider])
    raise ConfigurationError(f"{names} not found in environment variables")


def create_raw_client(
    provider: LLMProvider,
    api_key: str,
    timeout: float = 120.0,
    max_retries: int = 0,
) -> Any:
    """
    Create the provider SDK client.

    Returns:
        OpenAI client (OpenAI and Groq), Anthropic client, or the
        google.generativeai module configured with the key
    """
    if provider in (LLMProvider.OPENAI, LLMProvider.GROQ):
        from openai import OpenAI
        base_url = GROQ_BASE_URL if provider == LLMProvider.GROQ else None
        return OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=max_retries)
    elif provider == LLMProvider.ANTHROPIC:
        import anthropic
        return anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)
    elif provider == LLMProvider.GOOGLE:
        import google.generativeai as genai
        genai.configure(api_key=api_key)
        return genai
    raise ConfigurationError(f"Unsupported provider: {provider}")


class LLMCompletionClient(RateLimitedMixin):
    """
    CompletionClient backed by a hosted LLM.

    Sends the system prompt (where the provider has a system role) and the
    extraction prompt, and returns the reply text unparsed.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        system_prompt: str = SYSTEM_PROMPT,
        rate_limit: Optional[RateLimitConfig] = None,
        timeout: float = 120.0,
        client: Any = None,
    ):
        """
        Initialize the client.

        Args:
            model: Model name or alias
            provider: "groq", "openai", "anthropic" or "google". Auto-detected if None.
            api_key: API key. Uses the provider's environment variable if None.
            temperature: Sampling temperature
            max_tokens: Reply token cap
            system_prompt: System message sent with every call
            rate_limit: Pacing between calls
            timeout: Per-call timeout in seconds
            client: Pre-built SDK client (skips key lookup)

        Raises:
            ConfigurationError: If the provider is unknown or no key is set
        """
        try:
            self.provider = LLMProvider(provider.lower()) if provider else detect_provider(model)
        except ValueError:
            raise ConfigurationError(f"Unsupported provider: {provider}")

        self.model = resolve_model_name(model)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self._rate_limit_config = rate_limit or RateLimitConfig()
        self._last_call_time = 0.0

        if client is None:
            key = get_api_key(self.provider, api_key)
            client = create_raw_client(
                self.provider,
                key,
                timeout=timeout,
                max_retries=self._rate_limit_config.max_retries,
            )
        self._client = client

        logger.info(f"Completion client ready: {self.provider.value}/{self.model}")

    def complete(self, prompt: str) -> str:
        """
        Send a prompt and return the raw reply text.

        Raises:
            UpstreamError: On any provider failure (network, auth, rate limit)
        """
        self._apply_rate_limit()
        start = time.time()
        try:
            reply = self._call(prompt)
        except Exception as e:
            logger.error(f"{self.provider.value} call failed: {e}")
            raise UpstreamError(str(e), provider=self.provider.value) from e

        logger.debug(f"{self.provider.value} replied in {time.time() - start:.1f}s ({len(reply)} chars)")
        return reply

    def _call(self, prompt: str) -> str:
        if self.provider in (LLMProvider.OPENAI, LLMProvider.GROQ):
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            return response.choices[0].message.content or ""

        elif self.provider == LLMProvider.ANTHROPIC:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=self.system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
            return "".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            )

        elif self.provider == LLMProvider.GOOGLE:
            model_obj = self._client.GenerativeModel(
                model_name=self.model,
                system_instruction=self.system_prompt,
            )
            response = model_obj.generate_content(
                prompt,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                },
            )
            return response.text or ""

        raise ConfigurationError(f"Unsupported provider: {self.provider}")


# =============================================================================
# Provider Info Utilities
# =============================================================================

def get_provider_info() -> dict:
    """Get information about supported providers and models."""
    return {
        "providers": {
            provider.value: {
                "env_var": " or ".join(API_KEY_ENV_VARS[provider]),
                "models": PROVIDER_MODELS[provider],
                "configured": any(os.environ.get(v) for v in API_KEY_ENV_VARS[provider]),
            }
            for provider in LLMProvider
        },
        "aliases": MODEL_ALIASES,
        "default_model": DEFAULT_MODEL,
    }
