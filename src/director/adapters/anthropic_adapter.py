from __future__ import annotations

import logging
from typing import Optional, Sequence

import anthropic

from .llm_base import ChatMessage, LLMAdapter, LLMResponse

logger = logging.getLogger(__name__)


class AnthropicAdapter(LLMAdapter):
    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-3-haiku-20240307",
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("ANTHROPIC_API_KEY not configured")
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def complete(self, messages: Sequence[ChatMessage], system_prompt: str) -> LLMResponse:
        options = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system_prompt,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if self.temperature is not None:
            options["temperature"] = self.temperature
        response = self.client.messages.create(**options)

        text = "\n".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        logger.info(
            "[anthropic] model=%s input_tokens=%s output_tokens=%s",
            self.model,
            input_tokens,
            output_tokens,
        )
        return LLMResponse(
            raw_text=text,
            usage={
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
            provider=self.name,
        )
