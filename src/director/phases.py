"""Phase resolution for a Director turn.

The active phase is never stored. It is recomputed on every call from the
latest user message and the transcript (or the control-state token, when the
caller round-trips one).
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from director.gates.classifiers import explicit_phase_request, is_jump_acceptance
from director.gates.responders import PHASE_JUMP_MARKER
from director.models import ControlState, Phase, Turn

_OFFER_TARGET = re.compile(
    re.escape(PHASE_JUMP_MARKER) + r"\s*(CONCEPT|PLAN|EXECUTE|WRAP)\b", re.IGNORECASE
)


def _conversation(transcript: Sequence[Turn], latest_user_text: Optional[str]) -> List[Turn]:
    turns = list(transcript)
    if latest_user_text is not None:
        turns.append(Turn(role="user", text=latest_user_text))
    return turns


def _offer_index(turns: Sequence[Turn]) -> Optional[int]:
    for index in range(len(turns) - 1, -1, -1):
        turn = turns[index]
        if turn.role == "assistant" and _OFFER_TARGET.search(turn.text):
            return index
    return None


def offered_jump(transcript: Sequence[Turn]) -> Optional[Phase]:
    """Target phase of the most recent phase-jump offer, if any."""
    index = _offer_index(transcript)
    if index is None:
        return None
    match = _OFFER_TARGET.search(transcript[index].text)
    return Phase(match.group(1).upper())


def pending_offer(
    transcript: Sequence[Turn], state: Optional[ControlState] = None
) -> Optional[Phase]:
    """Target of the most recent offer, from the token when there is one."""
    if state is not None:
        return state.offered_phase
    return offered_jump(transcript)


def accepted_jump(
    transcript: Sequence[Turn],
    latest_user_text: Optional[str] = None,
    state: Optional[ControlState] = None,
) -> Optional[Phase]:
    """Target phase of an accepted phase-jump offer, or None.

    Only a literal "2" / "option 2" reply to the most recent offer accepts it.
    """
    if state is not None:
        if state.accepted_phase is not None:
            return state.accepted_phase
        if state.offered_phase is not None and is_jump_acceptance(latest_user_text or ""):
            return state.offered_phase
        return None

    turns = _conversation(transcript, latest_user_text)
    index = _offer_index(turns)
    if index is None:
        return None
    for turn in turns[index + 1:]:
        if turn.role == "user" and is_jump_acceptance(turn.text):
            return offered_jump(turns[: index + 1])
    return None


def resolve(
    transcript: Sequence[Turn],
    latest_user_text: str,
    state: Optional[ControlState] = None,
) -> Phase:
    explicit = explicit_phase_request(latest_user_text)
    if explicit is not None:
        return explicit
    accepted = accepted_jump(transcript, latest_user_text, state)
    if accepted is not None:
        return accepted
    return Phase.CONCEPT


def just_accepted_jump(
    transcript: Sequence[Turn],
    latest_user_text: str,
    state: Optional[ControlState] = None,
) -> Optional[Phase]:
    """Target phase when the latest message itself accepts the offer made in the previous reply."""
    if not is_jump_acceptance(latest_user_text):
        return None
    if state is not None:
        return state.offered_phase if state.offer_in_reply else None
    for turn in reversed(transcript):
        if turn.role == "assistant":
            match = _OFFER_TARGET.search(turn.text)
            return Phase(match.group(1).upper()) if match else None
    return None
