"""OpenAI-compatible chat client used for suggestion generation."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Protocol

import openai

from planner.core.config import settings
from planner.core.errors import AuthenticationError, TransientProviderError

logger = logging.getLogger(__name__)


class ModelProvider(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str: ...


class OpenAIChatProvider:
    """Chat completions over the OpenAI SDK, pointed at OpenRouter by default.

    SDK exceptions are translated so their messages classify cleanly for retry:
    credential problems become ``AuthenticationError``, everything transient
    becomes ``TransientProviderError``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = settings.ai_model,
        base_url: str = settings.openai_base_url,
        timeout: float = settings.ai_request_timeout_s,
    ):
        self.model = model
        # Retries are handled by RetryEngine.
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def complete(self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str:
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise AuthenticationError(f"authentication failed: {exc}") from exc
        except openai.RateLimitError as exc:
            raise TransientProviderError(f"rate limit reached at model provider: {exc}") from exc
        except openai.APITimeoutError as exc:
            raise TransientProviderError(f"network timeout calling model provider: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise TransientProviderError(f"network connection to model provider failed: {exc}") from exc
        except openai.BadRequestError as exc:
            raise TransientProviderError(f"invalid request format: {exc}") from exc
        except openai.APIStatusError as exc:
            raise TransientProviderError(f"AI model provider error {exc.status_code}: {exc}") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise TransientProviderError("No response from AI model")
        return content


@lru_cache
def get_model_provider() -> Optional[ModelProvider]:
    """Return the configured provider, or ``None`` when no API key is set."""
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY missing; suggestions will use fallback templates.")
        return None
    return OpenAIChatProvider(api_key=settings.openrouter_api_key)
