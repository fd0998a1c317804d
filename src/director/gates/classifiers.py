from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

from director.models import Gate, Phase, Turn

_NAV_VERBS = r"(?:go to|switch to|move to|advance to|enter)"

_EXPLICIT_NAVIGATION: Tuple[Tuple[Phase, re.Pattern], ...] = tuple(
    (phase, re.compile(rf"\b{_NAV_VERBS}\s+{phase.value.lower()}\b", re.IGNORECASE))
    for phase in (Phase.CONCEPT, Phase.PLAN, Phase.EXECUTE, Phase.WRAP)
)

_READY_IDIOMS: Tuple[Tuple[Phase, re.Pattern], ...] = tuple(
    (phase, re.compile(rf"\bready to {phase.value.lower()}\b", re.IGNORECASE))
    for phase in (Phase.PLAN, Phase.EXECUTE, Phase.WRAP)
)

_IMPLICIT_VOCABULARY: Tuple[Tuple[Phase, re.Pattern], ...] = (
    (
        Phase.PLAN,
        re.compile(
            r"\b(?:budget|estimate|pricing|rate|timeline|schedule|crew|location|permit"
            r"|casting|deliverable)",
            re.IGNORECASE,
        ),
    ),
    (
        Phase.EXECUTE,
        re.compile(
            r"\b(?:call sheet|shoot day|on set|set notes|production notes|client selects)\b",
            re.IGNORECASE,
        ),
    ),
    (
        Phase.WRAP,
        re.compile(
            r"\b(?:licens|usage rights|deliverables?\b|archive|handoff|final delivery)",
            re.IGNORECASE,
        ),
    ),
)

_FORMAT_TERMS = re.compile(r"\b(?:photo|photography|video|film|hybrid)\b", re.IGNORECASE)
_INTENT_TERMS = re.compile(r"\b(?:personal|commercial|editorial)\b", re.IGNORECASE)
_OBJECTIVE_TERMS = re.compile(
    r"\b(?:to promote|to launch|to sell|to announce|goal|objective|message|story"
    r"|campaign|awareness)\b",
    re.IGNORECASE,
)

_BUDGET_FIRST = re.compile(
    r"\b(?:start with budget|start with the budget|budget first|i want to start with budget)\b",
    re.IGNORECASE,
)

# "known budget", "unknown budget", "budget is unknown", "budget: known"
_BUDGET_KNOWN = re.compile(
    r"\b(?:known|unknown)\W+(?:\w+\W+)?budget\b|\bbudget\W+(?:\w+\W+)?(?:known|unknown)\b",
    re.IGNORECASE,
)
_CURRENCY = re.compile(r"\$\s*\d")
_THOUSANDS = re.compile(r"\b\d+(?:\.\d+)?\s*(?:k|grand)\b", re.IGNORECASE)
_RANGE = re.compile(r"\b\d+\s*-\s*\d+\b")

_DAY_COUNT = re.compile(
    r"\b(?:\d+\s*\+?\s*days?\b|one day\b|two days\b|three days\b|[123]\+(?!\w)|[123](?![\w.,]\d|\w))",
    re.IGNORECASE,
)
_COMPLEXITY = re.compile(r"\b(?:simple|standard|complex)\b", re.IGNORECASE)

_KNOWN_UNKNOWN = re.compile(r"\b(?:known|unknown)\b", re.IGNORECASE)
_ENVIRONMENT = re.compile(r"\b(?:studio|interior|exterior|mixed)\b", re.IGNORECASE)

_YES = re.compile(r"\byes\b", re.IGNORECASE)
_NO = re.compile(r"\bno\b", re.IGNORECASE)
_TALENT_TYPE = re.compile(r"\b(?:model|customer|spokesperson|other)\b", re.IGNORECASE)

_JUMP_ACCEPTANCE = ("2", "option 2")


def explicit_phase_request(text: str) -> Optional[Phase]:
    text = text or ""
    for phase, pattern in _EXPLICIT_NAVIGATION:
        if pattern.search(text):
            return phase
    for phase, pattern in _READY_IDIOMS:
        if pattern.search(text):
            return phase
    return None


def implicit_phase_jump(text: str) -> Optional[Phase]:
    text = text or ""
    for phase, pattern in _IMPLICIT_VOCABULARY:
        if pattern.search(text):
            return phase
    return None


def requested_phase(text: str) -> Optional[Phase]:
    return explicit_phase_request(text) or implicit_phase_jump(text)


def concept_complete(transcript: Iterable[Turn]) -> bool:
    """True only when the user turns cover format, intent and objective together."""
    corpus = "\n".join(turn.text for turn in transcript if turn.role == "user")
    return bool(
        _FORMAT_TERMS.search(corpus)
        and _INTENT_TERMS.search(corpus)
        and _OBJECTIVE_TERMS.search(corpus)
    )


def budget_first_request(text: str) -> bool:
    return bool(_BUDGET_FIRST.search(text or ""))


def is_jump_acceptance(text: str) -> bool:
    return (text or "").strip().lower() in _JUMP_ACCEPTANCE


def budget_answered(text: str) -> bool:
    text = text or ""
    return bool(
        _BUDGET_KNOWN.search(text)
        or _CURRENCY.search(text)
        or _THOUSANDS.search(text)
        or _RANGE.search(text)
    )


def scope_answered(text: str) -> bool:
    text = text or ""
    return bool(_DAY_COUNT.search(text) and _COMPLEXITY.search(text))


def locations_answered(text: str) -> bool:
    text = text or ""
    return bool(_KNOWN_UNKNOWN.search(text) and _ENVIRONMENT.search(text))


def talent_answered(text: str) -> bool:
    text = text or ""
    if _YES.search(text):
        return bool(_TALENT_TYPE.search(text))
    return bool(_NO.search(text))


_GATE_PREDICATES = {
    Gate.BUDGET: budget_answered,
    Gate.SCOPE: scope_answered,
    Gate.LOCATIONS: locations_answered,
    Gate.TALENT: talent_answered,
}


def gate_answered(gate: Gate, text: str) -> bool:
    predicate = _GATE_PREDICATES.get(gate)
    if predicate is None:
        return False
    return predicate(text)
