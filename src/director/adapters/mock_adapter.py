from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .llm_base import ChatMessage, LLMAdapter, LLMResponse


@dataclass
class MockAdapter(LLMAdapter):
    """Deterministic offline backend. Records every call for inspection."""

    name: str = "mock"
    calls: List[Dict] = field(default_factory=list)

    def complete(self, messages: Sequence[ChatMessage], system_prompt: str) -> LLMResponse:
        self.calls.append({"messages": list(messages), "system_prompt": system_prompt})
        text = self._build_reply(messages, system_prompt)
        prompt_chars = len(system_prompt) + sum(len(m.content) for m in messages)
        usage = {
            "prompt_tokens": prompt_chars // 4,
            "completion_tokens": len(text) // 4,
            "total_tokens": prompt_chars // 4 + len(text) // 4,
        }
        return LLMResponse(raw_text=text, usage=usage, provider=self.name)

    def _build_reply(self, messages: Sequence[ChatMessage], system_prompt: str) -> str:
        latest = next((m.content for m in reversed(messages) if m.role == "user"), "").strip()
        summary = f"Request noted: {latest}" if latest else "Request noted."
        if "PHASE: PLAN" in system_prompt:
            return "\n".join(
                [
                    summary,
                    "",
                    "PLAN WORKING DRAFT",
                    "BUDGET",
                    "- [TBD]",
                    "SCHEDULE",
                    "- [TBD]",
                    "LOCATIONS & SETS",
                    "- [TBD]",
                    "CREW LIST",
                    "- [TBD]",
                    "CASTING & TALENT",
                    "- [TBD]",
                    "",
                    "Which shoot dates are confirmed?",
                ]
            )
        if "PHASE: CONCEPT" in system_prompt:
            return "\n".join(
                [
                    summary,
                    "",
                    "CONCEPT WORKING DRAFT",
                    "BRIEF",
                    "- [TBD]",
                    "CREATIVE DIRECTION",
                    "- [TBD]",
                    "SHOT & SCENE BOOK",
                    "- [TBD]",
                    "",
                    "Is this photo, video, or hybrid?",
                ]
            )
        return "\n".join([summary, "", "WORKING DRAFT", "- [TBD]"])
