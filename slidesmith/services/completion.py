"""Completion client — chat completions with credential rotation.

Calls an OpenAI-compatible endpoint (Gemini's by default). Several API keys
can be configured; each call tries them in round-robin order starting from
the cursor and stops at the first non-empty answer. The cursor lives on the
client, and one client is shared per process, so consecutive calls spread
over the keys instead of always starting with the first one.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from openai import AsyncOpenAI

from slidesmith.config import get_settings
from slidesmith.core.errors import ErrorCode, SlidesmithError, handle_error
from slidesmith.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class KeyRotation:
    """Round-robin cursor over ``size`` credentials."""

    size: int
    index: int = 0

    def __post_init__(self) -> None:
        if self.size > 0:
            self.index %= self.size

    def order(self) -> list[int]:
        """Credential indexes to try for one call, starting at the cursor."""
        return [(self.index + offset) % self.size for offset in range(self.size)]

    def advance_past(self, used_index: int) -> None:
        self.index = (used_index + 1) % self.size


ClientFactory = Callable[[str], Any]


class CompletionClient:
    """Thin wrapper over ``AsyncOpenAI`` that rotates API keys."""

    def __init__(
        self,
        api_keys: list[str],
        *,
        model: str | None = None,
        base_url: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        start_index: int = 0,
        client_factory: ClientFactory | None = None,
    ) -> None:
        settings = get_settings()
        self.api_keys = list(api_keys)
        self.model = model or settings.llm_model
        self.base_url = base_url or settings.llm_base_url
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.timeout = settings.llm_timeout_seconds
        self.rotation = KeyRotation(size=len(self.api_keys), index=start_index)
        self._client_factory = client_factory or self._default_client
        self._clients: dict[int, Any] = {}

    def _default_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self.base_url, timeout=self.timeout, max_retries=0)

    def _client_for(self, index: int) -> Any:
        if index not in self._clients:
            self._clients[index] = self._client_factory(self.api_keys[index])
        return self._clients[index]

    def ensure_configured(self) -> None:
        """Raise a configuration error when no credential is available."""
        if not self.api_keys:
            raise SlidesmithError(ErrorCode.MISSING_AI_API_KEYS)

    async def complete(self, prompt: str, system_instruction: str = "") -> str:
        """Return the completion text, or ``""`` when every credential failed."""
        if not self.api_keys:
            logger.warning("completion_skipped_no_keys")
            return ""

        for attempt, index in enumerate(self.rotation.order(), start=1):
            logger.debug("completion_attempt", attempt=attempt, key_number=index + 1)
            try:
                response = await self._client_for(index).chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_instruction},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
                text = (response.choices[0].message.content or "").strip()
            except Exception as e:
                logger.warning("completion_attempt_failed", key_number=index + 1, error=str(e))
                continue

            if text:
                self.rotation.advance_past(index)
                return text
            logger.warning("completion_empty_response", key_number=index + 1)

        handle_error(ErrorCode.AI_API_ALL_ATTEMPTS_FAILED, {"attempts": len(self.api_keys)})
        return ""


@lru_cache
def get_completion_client() -> CompletionClient:
    """Process-wide client, so the rotation cursor persists across runs."""
    return CompletionClient(get_settings().completion_api_keys)
