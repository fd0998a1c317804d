from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, List, Optional, Sequence

from google import genai

from .llm_base import ChatMessage, LLMAdapter, LLMResponse

logger = logging.getLogger(__name__)


class GeminiAdapter(LLMAdapter):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-flash-latest",
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
        max_attempts: int = 5,
        base_delay: float = 1.0,
    ) -> None:
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY not configured")

        self.client = genai.Client(api_key=api_key)
        self.model_candidates: List[str] = [model]
        for fallback in ("gemini-pro", "gemini-1.5-pro"):
            if fallback not in self.model_candidates:
                self.model_candidates.append(fallback)

        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def _is_transient(self, err: Exception) -> bool:
        msg = str(err).lower()
        return any(s in msg for s in ["503", "unavailable", "429", "too many", "timeout", "temporarily"])

    def _contents(self, messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        # Gemini names the assistant role "model".
        return [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
        ]

    def complete(self, messages: Sequence[ChatMessage], system_prompt: str) -> LLMResponse:
        config: Dict[str, Any] = {
            "system_instruction": system_prompt,
            "max_output_tokens": self.max_tokens,
        }
        if self.temperature is not None:
            config["temperature"] = self.temperature
        contents = self._contents(messages)
        last_err: Exception | None = None

        for model in self.model_candidates:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    logger.info("[gemini] model=%s attempt=%d/%d", model, attempt, self.max_attempts)
                    response = self.client.models.generate_content(
                        model=model,
                        contents=contents,
                        config=config,
                    )
                    text = getattr(response, "text", None)
                    if not text:
                        raise RuntimeError("Gemini returned empty content.")
                    return LLMResponse(raw_text=text, usage=self._usage(response), provider=self.name)

                except Exception as e:
                    last_err = e
                    if not self._is_transient(e):
                        break

                    delay = self.base_delay * (2 ** (attempt - 1)) + random.random() * 0.5
                    logger.warning("[gemini] transient error: %s -> sleeping %.2fs", e, delay)
                    time.sleep(delay)

            logger.warning("[gemini] switching model after failures: %s", model)

        raise RuntimeError(
            "Gemini generate_content failed for all candidate models. "
            f"Last error: {last_err}"
        ) from last_err

    def _usage(self, response: Any) -> Optional[Dict[str, Any]]:
        metadata = getattr(response, "usage_metadata", None)
        if metadata is None:
            return None
        return {
            "prompt_tokens": getattr(metadata, "prompt_token_count", None),
            "completion_tokens": getattr(metadata, "candidates_token_count", None),
            "total_tokens": getattr(metadata, "total_token_count", None),
        }
