"""
Async chat-completion client used to phrase companion status lines.
Talks to OpenAI directly, or to Groq through its OpenAI-compatible API.
"""

import asyncio
import os
import logging
from typing import List, Optional

from dotenv import load_dotenv
from openai import AsyncOpenAI
from openai import APIError, RateLimitError, APITimeoutError

logger = logging.getLogger(__name__)

load_dotenv()

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

# Errors worth another attempt; everything else fails the status line at once
RETRYABLE_ERRORS = (RateLimitError, APITimeoutError)


class LLMClient:
    """
    Status-line generator backed by a chat completion model.

    Design principles:
    - Short: status lines are one or two sentences, output is capped hard
    - Bounded: a slow model only delays the tick that asked, never the next one
    - Resilient: transient failures retry with a short backoff
    - Observable: token usage and failures are logged
    """

    # A status prompt is a few hundred characters; anything larger is a bug upstream
    MAX_INPUT_TOKENS = 400
    MAX_OUTPUT_TOKENS = 60
    REQUEST_TIMEOUT = 10.0
    RETRY_BACKOFF_SECONDS = 0.5

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
    ):
        """
        Args:
            api_key: Provider key (defaults to OPENAI_API_KEY env var)
            model: Chat model; a small one is plenty for a status line
            base_url: OpenAI-compatible endpoint for other providers
        """
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise ValueError(
                "OPENAI_API_KEY is not set. Export it or pass api_key "
                "to enable LLM status messages."
            )
        self.api_key = key
        self.model = model
        self.client = AsyncOpenAI(api_key=key, base_url=base_url) if base_url else AsyncOpenAI(api_key=key)

        logger.info(f"Status-line LLM ready (model={model}{', base_url=' + base_url if base_url else ''})")

    @classmethod
    def for_groq(cls, api_key: Optional[str] = None, model: str = "llama-3.1-8b-instant") -> "LLMClient":
        """Client pointed at Groq (defaults to GROQ_API_KEY env var)."""
        key = api_key or os.getenv("GROQ_API_KEY")
        if not key:
            raise ValueError(
                "GROQ_API_KEY is not set. Export it or pass api_key "
                "to use Groq for status messages."
            )
        return cls(api_key=key, model=model, base_url=GROQ_BASE_URL)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_retries: int = 2,
    ) -> str:
        """
        Ask the model for a status line.

        Returns:
            The model's text (possibly empty)

        Raises:
            RuntimeError: When the provider rejects the request or every
                retry of a transient failure is used up
        """
        approx_tokens = (len(system_prompt) + len(user_prompt)) // 4
        if approx_tokens > self.MAX_INPUT_TOKENS:
            logger.warning(f"Status prompt is ~{approx_tokens} tokens, over the {self.MAX_INPUT_TOKENS} cap")

        messages = _chat_messages(system_prompt, user_prompt)
        attempts = max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                return await self._create(messages, temperature)
            except RETRYABLE_ERRORS as e:
                logger.warning(f"{type(e).__name__} from {self.model} ({attempt}/{attempts}): {e}")
                if attempt == attempts:
                    raise RuntimeError(f"Status message model unavailable after {attempts} attempts") from e
                await asyncio.sleep(self.RETRY_BACKOFF_SECONDS * attempt)
            except APIError as e:
                logger.error(f"Status message request rejected by {self.model}: {e}")
                raise RuntimeError(f"Status message request rejected: {e}") from e

        raise RuntimeError("Status message model returned nothing")

    async def _create(self, messages: List[dict], temperature: float) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=self.MAX_OUTPUT_TOKENS,
            timeout=self.REQUEST_TIMEOUT,
        )
        usage = response.usage
        if usage is not None:
            logger.debug(f"Status line tokens: {usage.prompt_tokens} in, {usage.completion_tokens} out")
        return response.choices[0].message.content or ""


def _chat_messages(system_prompt: str, user_prompt: str) -> List[dict]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def build_llm_client(config: dict) -> Optional[LLMClient]:
    """LLM client for the configured provider, or None when disabled or unconfigured."""
    if not config.get("use_llm"):
        return None
    provider = (config.get("llm_provider") or "openai").lower()
    try:
        if provider == "groq":
            return LLMClient.for_groq()
        return LLMClient()
    except ValueError as e:
        logger.warning(f"LLM status messages disabled: {e}")
        return None
