from __future__ import annotations

from typing import Dict, List

from director.models import Gate, Phase

PHASE_JUMP_MARKER = "PHASE JUMP REQUEST DETECTED:"

GATE_MARKERS: Dict[Gate, str] = {
    Gate.BUDGET: "BUDGET (GATE)",
    Gate.SCOPE: "SCOPE FIT (GATE)",
    Gate.LOCATIONS: "LOCATIONS (GATE)",
    Gate.TALENT: "TALENT (GATE)",
}

_GATE_QUESTIONS: Dict[Gate, List[str]] = {
    Gate.BUDGET: [
        "Is the budget known or unknown?",
        "If unknown: what is the ceiling or range?",
    ],
    Gate.SCOPE: [
        "How many shoot days do you expect? (1 / 2 / 3+)",
        "Complexity: simple / standard / complex",
    ],
    Gate.LOCATIONS: [
        "Is the location known or unknown?",
        "Environment type: studio / interior / exterior / mixed",
    ],
    Gate.TALENT: [
        "Talent needed? (yes/no)",
        "If yes: talent type (model / real customer / spokesperson / other)",
    ],
}


def phase_jump_offer(target: Phase) -> str:
    name = Phase(target).value
    lines: List[str] = [
        f"{PHASE_JUMP_MARKER} {name}",
        "",
        f"You want to start in {name}.",
        "CONCEPT usually comes first.",
        "",
        "Would you like to:",
        "1) Finish the CONCEPT first (working draft)",
        f"2) Start a custom workflow at {name}",
        "",
        "Which option do you want: 1 or 2?",
    ]
    return "\n".join(lines)


def gate_prompt(gate: Gate) -> str:
    gate = Gate(gate)
    lines: List[str] = [f"PHASE: {Phase.PLAN.value}", GATE_MARKERS[gate], ""]
    lines.extend(_GATE_QUESTIONS[gate])
    return "\n".join(lines)
