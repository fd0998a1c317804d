from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from director.gates.classifiers import gate_answered
from director.gates.responders import GATE_MARKERS
from director.models import GATE_ORDER, ControlState, Gate, Turn, last_text


@dataclass(frozen=True)
class GateStep:
    gate: Gate
    next_gate: Optional[Gate]
    satisfied: bool

    @property
    def cleared(self) -> bool:
        return self.satisfied and self.next_gate is None


def gate_from_text(text: str) -> Optional[Gate]:
    lowered = (text or "").lower()
    for gate in GATE_ORDER:
        if GATE_MARKERS[gate].lower() in lowered:
            return gate
    return None


def current_gate(
    transcript: Sequence[Turn], state: Optional[ControlState] = None
) -> Optional[Gate]:
    if state is not None:
        return state.gate
    return gate_from_text(last_text(transcript, "assistant"))


def next_gate(gate: Gate) -> Optional[Gate]:
    index = GATE_ORDER.index(Gate(gate))
    if index + 1 < len(GATE_ORDER):
        return GATE_ORDER[index + 1]
    return None


def advance(gate: Gate, user_text: str) -> GateStep:
    """Single-hop enforcement: test only the open gate against this message."""
    gate = Gate(gate)
    if not gate_answered(gate, user_text):
        return GateStep(gate=gate, next_gate=gate, satisfied=False)
    return GateStep(gate=gate, next_gate=next_gate(gate), satisfied=True)


def run_from_budget(user_text: str) -> GateStep:
    """PLAN-entry fast path.

    Unlike ``advance``, this keeps testing the same message against each gate
    in order, so an opening message may pre-answer several gates at once. The
    returned step names the last gate tested; ``cleared`` means all four passed.
    """
    step = advance(Gate.BUDGET, user_text)
    while step.satisfied and step.next_gate is not None:
        step = advance(step.next_gate, user_text)
    return step
