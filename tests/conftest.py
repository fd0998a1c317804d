from __future__ import annotations

from typing import List, Optional

import pytest

from director.adapters.llm_base import LLMResponse
from director.controller import DirectorController
from director.gates.responders import gate_prompt, phase_jump_offer
from director.models import Gate, Phase, Turn
from director.prompts import ToolRegistry


class RecordingInvoker:
    """Stands in for the model router; remembers every call."""

    def __init__(self, reply: str = "model reply", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[dict] = []

    def invoke(self, messages, system_prompt, provider=None):
        self.calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "provider": provider}
        )
        if self.error is not None:
            raise self.error
        return LLMResponse(
            raw_text=self.reply,
            usage={"total_tokens": 42},
            provider=provider.value if provider else "openai",
        )


def user(text: str) -> Turn:
    return Turn(role="user", text=text)


def assistant(text: str) -> Turn:
    return Turn(role="assistant", text=text)


def offer(target: Phase) -> Turn:
    return assistant(phase_jump_offer(target))


def gate(g: Gate) -> Turn:
    return assistant(gate_prompt(g))


@pytest.fixture(scope="session")
def registry() -> ToolRegistry:
    return ToolRegistry.load()


@pytest.fixture
def invoker() -> RecordingInvoker:
    return RecordingInvoker()


@pytest.fixture
def controller(invoker, registry) -> DirectorController:
    return DirectorController(invoker, registry=registry)
