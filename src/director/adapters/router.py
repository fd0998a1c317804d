from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from director.config import DirectorConfig
from director.models import ModelInvocationError, Provider

from .llm_base import ChatMessage, LLMAdapter, LLMResponse
from .mock_adapter import MockAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Provider, DirectorConfig], LLMAdapter]

PROBE_PROMPT = "You are a helpful assistant."
PROBE_MESSAGE = 'Say "OK" if you can read this.'


def default_adapter_factory(provider: Provider, config: DirectorConfig) -> LLMAdapter:
    options = {
        "api_key": config.api_key(provider),
        "model": config.model_for(provider),
        "max_tokens": config.max_output_tokens,
        "temperature": config.temperature,
    }
    if provider == Provider.ANTHROPIC:
        from .anthropic_adapter import AnthropicAdapter

        return AnthropicAdapter(**options)
    if provider == Provider.GEMINI:
        from .gemini_adapter import GeminiAdapter

        return GeminiAdapter(**options)
    from .openai_adapter import OpenAIAdapter

    return OpenAIAdapter(**options)


class ModelRouter:
    """Model-invocation boundary: picks a backend and optionally falls back.

    Retry and fallback live here, never in the controller.
    """

    def __init__(
        self,
        config: DirectorConfig,
        adapter_factory: AdapterFactory = default_adapter_factory,
        mock: Optional[LLMAdapter] = None,
    ) -> None:
        self.config = config
        self._factory = adapter_factory
        self._mock = mock
        self._adapters: Dict[Provider, LLMAdapter] = {}

    def _adapter(self, provider: Provider) -> LLMAdapter:
        if self.config.mode == "mock":
            if self._mock is None:
                self._mock = MockAdapter()
            return self._mock
        if provider not in self._adapters:
            self._adapters[provider] = self._factory(provider, self.config)
        return self._adapters[provider]

    def candidates(self, provider: Optional[Provider]) -> List[Provider]:
        preferred = Provider(provider) if provider else self.config.default_provider
        order = [preferred]
        if self.config.fallback_enabled and self.config.mode != "mock":
            order.extend(p for p in Provider if p != preferred)
        return order

    def invoke(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        provider: Optional[Provider] = None,
    ) -> LLMResponse:
        failures: List[str] = []
        for candidate in self.candidates(provider):
            if failures:
                logger.warning("Falling back to %s after: %s", candidate.value, failures[-1])
            try:
                adapter = self._adapter(candidate)
                response = adapter.complete(messages, system_prompt)
            except Exception as exc:
                logger.error("[%s] failed: %s", candidate.value, exc)
                failures.append(f"{candidate.value}: {exc}")
                continue
            if not response.provider:
                response.provider = getattr(adapter, "name", candidate.value)
            return response

        if len(failures) == 1:
            raise ModelInvocationError(failures[0])
        raise ModelInvocationError("All AI providers failed. " + "; ".join(failures))

    def probe(self, provider: Provider) -> Dict[str, object]:
        try:
            adapter = self._adapter(Provider(provider))
            adapter.complete([ChatMessage(role="user", content=PROBE_MESSAGE)], PROBE_PROMPT)
        except Exception as exc:
            return {"available": False, "error": str(exc)}
        return {"available": True}

    def available_providers(self) -> Dict[str, Dict[str, object]]:
        return {p.value: self.probe(p) for p in Provider}
