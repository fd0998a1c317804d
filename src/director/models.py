from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from jsonschema import ValidationError, validate

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"

DIRECTOR_TOOL = "Director"
NO_PROVIDER = "none"


class DirectorRequestError(ValueError):
    """Caller/contract error: the request is rejected before any control logic runs."""


class ModelInvocationError(RuntimeError):
    """The model backend failed; surfaced to the caller as a service error."""


class Phase(str, Enum):
    CONCEPT = "CONCEPT"
    PLAN = "PLAN"
    EXECUTE = "EXECUTE"
    WRAP = "WRAP"


class Gate(str, Enum):
    BUDGET = "BUDGET"
    SCOPE = "SCOPE"
    LOCATIONS = "LOCATIONS"
    TALENT = "TALENT"


GATE_ORDER: Tuple[Gate, ...] = (Gate.BUDGET, Gate.SCOPE, Gate.LOCATIONS, Gate.TALENT)


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: Any) -> Optional["Provider"]:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for provider in cls:
            if provider.value == text:
                return provider
        return None


@dataclass(frozen=True)
class Turn:
    role: str
    text: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Turn":
        text = data.get("text")
        if text is None:
            text = data.get("content", "")
        return cls(role=str(data.get("role", "")), text=str(text or ""))

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}


def coerce_transcript(transcript: Any) -> List[Turn]:
    if isinstance(transcript, (str, bytes)) or not isinstance(transcript, Sequence):
        raise DirectorRequestError("transcript must be an array of turns")
    turns: List[Turn] = []
    for index, item in enumerate(transcript):
        if isinstance(item, Turn):
            turn = item
        elif isinstance(item, Mapping):
            turn = Turn.from_dict(item)
        else:
            raise DirectorRequestError(f"transcript[{index}] is not a turn")
        if turn.role not in ("user", "assistant"):
            raise DirectorRequestError(
                f"transcript[{index}] has invalid role: {turn.role!r}"
            )
        turns.append(turn)
    return turns


def last_text(turns: Sequence[Turn], role: str) -> str:
    for turn in reversed(turns):
        if turn.role == role:
            return turn.text
    return ""


@dataclass
class ControlState:
    """Structural control state returned with every response.

    Callers that round-trip it get gate and phase-jump tracking without
    relying on marker text in the assistant's previous reply. A pending
    offer stays in ``offered_phase`` until a jump is accepted;
    ``offer_in_reply`` is set only on the reply that made the offer.
    """

    phase: Phase = Phase.CONCEPT
    gate: Optional[Gate] = None
    offered_phase: Optional[Phase] = None
    accepted_phase: Optional[Phase] = None
    offer_in_reply: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "gate": self.gate.value if self.gate else None,
            "offered_phase": self.offered_phase.value if self.offered_phase else None,
            "accepted_phase": self.accepted_phase.value if self.accepted_phase else None,
            "offer_in_reply": self.offer_in_reply,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ControlState":
        try:
            return cls(
                phase=Phase(data.get("phase") or Phase.CONCEPT.value),
                gate=Gate(data["gate"]) if data.get("gate") else None,
                offered_phase=Phase(data["offered_phase"]) if data.get("offered_phase") else None,
                accepted_phase=Phase(data["accepted_phase"]) if data.get("accepted_phase") else None,
                offer_in_reply=bool(data.get("offer_in_reply")),
            )
        except ValueError as exc:
            raise DirectorRequestError(f"Invalid state token: {exc}") from exc


@dataclass
class DirectorRequest:
    transcript: List[Turn]
    new_user_text: str
    tool_selector: str
    provider_selector: Optional[str] = None
    state: Optional[ControlState] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "DirectorRequest":
        if not isinstance(payload, Mapping):
            raise DirectorRequestError("request body must be a JSON object")
        data = _normalize_aliases(payload)
        if not data.get("toolSelector"):
            raise DirectorRequestError("toolSelector is required")
        try:
            validate(instance=data, schema=load_schema("director_request.schema.json"))
        except ValidationError as exc:
            path = "/".join(str(part) for part in exc.absolute_path) or "request"
            raise DirectorRequestError(f"{path}: {exc.message}") from exc
        state = data.get("state")
        return cls(
            transcript=coerce_transcript(data.get("transcript", [])),
            new_user_text=data.get("newUserText", ""),
            tool_selector=data["toolSelector"],
            provider_selector=data.get("providerSelector"),
            state=ControlState.from_dict(state) if state else None,
        )


@dataclass
class DirectorResponse:
    message: str
    usage: Optional[Dict[str, Any]] = None
    provider: str = NO_PROVIDER
    state: ControlState = field(default_factory=ControlState)

    @property
    def deterministic(self) -> bool:
        return self.provider == NO_PROVIDER

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["state"] = self.state.to_dict()
        return payload


def load_schema(name: str) -> Dict:
    return json.loads((SCHEMAS_DIR / name).read_text(encoding="utf-8"))


def _normalize_aliases(payload: Mapping[str, Any]) -> Dict[str, Any]:
    # Older clients send {messages, toolType, provider} with the latest user
    # message as the last element of messages.
    data = dict(payload)
    if "toolSelector" not in data and "toolType" in data:
        data["toolSelector"] = data.pop("toolType")
    if "providerSelector" not in data and "provider" in data:
        data["providerSelector"] = data.pop("provider")
    if "transcript" not in data and "messages" in data:
        messages = data.pop("messages")
        if (
            "newUserText" not in data
            and isinstance(messages, list)
            and messages
            and isinstance(messages[-1], Mapping)
            and messages[-1].get("role") == "user"
        ):
            latest = messages[-1]
            data["newUserText"] = str(latest.get("text", latest.get("content", "")) or "")
            messages = messages[:-1]
        data["transcript"] = messages
    data.setdefault("transcript", [])
    data.setdefault("newUserText", "")
    return data
