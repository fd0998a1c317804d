from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from director.models import Turn


@dataclass
class LLMResponse:
    raw_text: str
    usage: Optional[Dict[str, Any]] = None
    provider: str = ""


@dataclass
class ChatMessage:
    role: str
    content: str


def to_chat_messages(turns: Sequence[Turn]) -> List[ChatMessage]:
    return [ChatMessage(role=turn.role, content=turn.text) for turn in turns]


class LLMAdapter(Protocol):
    name: str

    def complete(self, messages: Sequence[ChatMessage], system_prompt: str) -> LLMResponse:
        raise NotImplementedError
