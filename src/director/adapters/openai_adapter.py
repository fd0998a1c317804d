from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from openai import OpenAI
from openai import APIConnectionError, APITimeoutError, RateLimitError, InternalServerError

from .llm_base import ChatMessage, LLMAdapter, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIAdapter(LLMAdapter):
    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4-turbo-preview",
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
        max_attempts: int = 4,
    ) -> None:
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not configured")
        self.client = OpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_attempts = max_attempts

    def complete(self, messages: Sequence[ChatMessage], system_prompt: str) -> LLMResponse:
        payload = [{"role": "system", "content": system_prompt}]
        payload.extend({"role": m.role, "content": m.content} for m in messages)
        options = {"model": self.model, "messages": payload, "max_tokens": self.max_tokens}
        if self.temperature is not None:
            options["temperature"] = self.temperature

        attempt = 0
        backoff = 1.0
        while True:
            attempt += 1
            try:
                response = self.client.chat.completions.create(**options)
                content = response.choices[0].message.content if response.choices else None
                usage = getattr(response, "usage", None)
                if usage:
                    usage_payload = {
                        "prompt_tokens": getattr(usage, "prompt_tokens", None),
                        "completion_tokens": getattr(usage, "completion_tokens", None),
                        "total_tokens": getattr(usage, "total_tokens", None),
                    }
                    logger.info(
                        "[openai] model=%s prompt_tokens=%s completion_tokens=%s total_tokens=%s",
                        self.model,
                        usage_payload["prompt_tokens"],
                        usage_payload["completion_tokens"],
                        usage_payload["total_tokens"],
                    )
                else:
                    usage_payload = None
                    logger.info("[openai] usage not provided by SDK")
                return LLMResponse(raw_text=content or "", usage=usage_payload, provider=self.name)
            except RateLimitError as exc:
                error = getattr(exc, "error", None)
                code = getattr(error, "code", None)
                if code == "insufficient_quota":
                    raise RuntimeError(
                        "OpenAI API quota exceeded. Please enable billing in your OpenAI account."
                    ) from exc
                if attempt >= self.max_attempts:
                    raise
                logger.warning("[openai] rate limited (attempt %d/%d)", attempt, self.max_attempts)
            except (APITimeoutError, APIConnectionError, InternalServerError) as exc:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "[openai] transient error (attempt %d/%d): %s", attempt, self.max_attempts, exc
                )
            time.sleep(backoff)
            backoff *= 2
