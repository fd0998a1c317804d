"""End-to-end turns through DirectorController with a recording model stand-in."""

from __future__ import annotations

import logging

import pytest

from director import phases
from director.adapters.llm_base import ChatMessage
from director.controller import DirectorController
from director.gates import classifiers, sequencer
from director.gates.responders import GATE_MARKERS, PHASE_JUMP_MARKER, gate_prompt
from director.models import (
    ControlState,
    DirectorRequestError,
    Gate,
    ModelInvocationError,
    Phase,
    Provider,
)

from conftest import RecordingInvoker, assistant, gate, offer, user

ALL_GATES_TEXT = "unknown budget, ceiling $20k, 2 days standard, studio known, no talent"


# ---------------------------------------------------------------------------
# Entering PLAN
# ---------------------------------------------------------------------------

def test_budget_first_request_opens_budget_gate(controller, invoker):
    response = controller.handle([], "I want to start with budget", "Director")

    assert response.message == gate_prompt(Gate.BUDGET)
    assert response.provider == "none"
    assert response.deterministic
    assert response.usage is None
    assert response.state == ControlState(phase=Phase.PLAN, gate=Gate.BUDGET)
    assert invoker.calls == []


def test_explicit_plan_request_opens_budget_gate(controller, invoker):
    response = controller.handle([], "let's go to plan", "Director")
    assert GATE_MARKERS[Gate.BUDGET] in response.message
    assert invoker.calls == []


def test_budget_answer_in_opening_message_skips_to_next_gate(controller):
    response = controller.handle([], "our budget is unknown, ceiling 10k", "Director")
    assert response.message == gate_prompt(Gate.SCOPE)
    assert response.state.gate == Gate.SCOPE


def test_opening_message_answering_every_gate_goes_to_model(controller, invoker):
    response = controller.handle([], ALL_GATES_TEXT, "Director")

    assert response.message == "model reply"
    assert response.provider == "openai"
    assert response.usage == {"total_tokens": 42}
    assert response.state.phase == Phase.PLAN
    assert len(invoker.calls) == 1
    assert "PHASE: PLAN" in invoker.calls[0]["system_prompt"]


def test_gates_cleared_with_explicit_phase_keep_that_phase(controller, invoker):
    text = "go to plan, " + ALL_GATES_TEXT
    response = controller.handle([], text, "Director")
    assert response.state.phase == Phase.PLAN
    assert len(invoker.calls) == 1


# ---------------------------------------------------------------------------
# Open gates
# ---------------------------------------------------------------------------

def test_full_gate_sequence_one_turn_each(controller, invoker):
    transcript = []
    replies = []
    for text in [
        "start with the budget",
        "unknown budget, ceiling 10k",
        "2 days, standard",
        "known, studio",
        "no",
    ]:
        response = controller.handle(transcript, text, "Director")
        replies.append(response)
        transcript = transcript + [user(text), assistant(response.message)]

    assert [r.state.gate for r in replies[:4]] == [Gate.BUDGET, Gate.SCOPE, Gate.LOCATIONS, Gate.TALENT]
    assert all(r.provider == "none" for r in replies[:4])
    assert replies[4].message == "model reply"
    assert replies[4].state == ControlState(phase=Phase.PLAN)
    assert len(invoker.calls) == 1


def test_unanswered_gate_is_asked_again(controller, invoker):
    transcript = [user("start with budget"), gate(Gate.BUDGET)]
    response = controller.handle(transcript, "hmm, not sure", "Director")
    assert response.message == gate_prompt(Gate.BUDGET)
    assert invoker.calls == []


def test_open_gate_beats_phase_request(controller, invoker):
    transcript = [user("start with budget"), gate(Gate.SCOPE)]
    response = controller.handle(transcript, "go to wrap", "Director")
    assert response.message == gate_prompt(Gate.SCOPE)
    assert invoker.calls == []


def test_open_gate_moves_one_gate_per_turn(controller, invoker):
    transcript = [user("start with budget"), gate(Gate.BUDGET)]
    response = controller.handle(transcript, ALL_GATES_TEXT, "Director")
    assert response.message == gate_prompt(Gate.SCOPE)
    assert invoker.calls == []


def test_gate_reply_ignores_non_gate_assistant_turns(controller, invoker):
    transcript = [user("start with budget"), gate(Gate.BUDGET), user("x"), assistant("Draft.")]
    controller.handle(transcript, "tell me more", "Director")
    assert len(invoker.calls) == 1


# ---------------------------------------------------------------------------
# Phase-jump offers
# ---------------------------------------------------------------------------

def test_implicit_jump_out_of_concept_gets_offer(controller, invoker):
    response = controller.handle([], "need a call sheet for tomorrow", "Director")

    assert response.message.startswith(f"{PHASE_JUMP_MARKER} EXECUTE")
    assert response.provider == "none"
    assert response.state == ControlState(
        phase=Phase.CONCEPT, offered_phase=Phase.EXECUTE, offer_in_reply=True
    )
    assert invoker.calls == []


def test_explicit_wrap_request_gets_offer(controller):
    response = controller.handle([], "move to wrap", "Director")
    assert response.message.startswith(f"{PHASE_JUMP_MARKER} WRAP")


def test_no_offer_once_concept_is_complete(controller, invoker):
    transcript = [user("A commercial video to launch our sneaker"), assistant("Draft.")]
    response = controller.handle(transcript, "need a call sheet for tomorrow", "Director")
    assert response.message == "model reply"
    assert "PHASE: CONCEPT" in invoker.calls[0]["system_prompt"]


def test_concept_request_never_offers(controller, invoker):
    controller.handle([], "go to concept", "Director")
    assert len(invoker.calls) == 1


def test_accepting_plan_offer_opens_budget_gate(controller, invoker):
    transcript = [user("what's our budget look like?"), offer(Phase.PLAN)]
    response = controller.handle(transcript, "2", "Director")

    assert response.message == gate_prompt(Gate.BUDGET)
    assert response.state.accepted_phase == Phase.PLAN
    assert invoker.calls == []


def test_declining_offer_stays_in_concept(controller, invoker):
    transcript = [user("what's our budget look like?"), offer(Phase.PLAN)]
    response = controller.handle(transcript, "1", "Director")

    assert response.message == "model reply"
    assert response.state.phase == Phase.CONCEPT
    assert "PHASE: CONCEPT" in invoker.calls[0]["system_prompt"]


def test_accepting_execute_offer_uses_tool_prompt(controller, invoker, registry):
    transcript = [user("need a call sheet for tomorrow"), offer(Phase.EXECUTE)]
    response = controller.handle(transcript, "Option 2", "call-sheet")

    assert response.state.phase == Phase.EXECUTE
    assert response.state.accepted_phase == Phase.EXECUTE
    system_prompt = invoker.calls[0]["system_prompt"]
    assert registry.block("call-sheet") in system_prompt
    assert "PHASE: CONCEPT" not in system_prompt


def test_accepted_jump_persists_on_later_turns(controller, invoker):
    transcript = [
        user("need a call sheet for tomorrow"),
        offer(Phase.EXECUTE),
        user("2"),
        assistant("Here is the call sheet."),
    ]
    response = controller.handle(transcript, "add a lunch break", "Director")
    assert response.state.phase == Phase.EXECUTE
    assert response.state.accepted_phase == Phase.EXECUTE


def test_no_offer_after_accepted_jump(controller, invoker):
    transcript = [user("need a call sheet"), offer(Phase.EXECUTE), user("2"), assistant("Done.")]
    response = controller.handle(transcript, "archive everything after", "Director")
    assert PHASE_JUMP_MARKER not in response.message
    assert len(invoker.calls) == 1


# ---------------------------------------------------------------------------
# Default delegation
# ---------------------------------------------------------------------------

def test_plain_message_goes_to_model_in_concept(controller, invoker):
    response = controller.handle([], "I want to shoot a portrait series", "Director")

    assert response.message == "model reply"
    assert response.state == ControlState(phase=Phase.CONCEPT)
    assert "PHASE: CONCEPT" in invoker.calls[0]["system_prompt"]


def test_model_receives_transcript_plus_new_message(controller, invoker):
    transcript = [user("hello"), assistant("hi there")]
    controller.handle(transcript, "a portrait series", "Director")

    assert invoker.calls[0]["messages"] == [
        ChatMessage(role="user", content="hello"),
        ChatMessage(role="assistant", content="hi there"),
        ChatMessage(role="user", content="a portrait series"),
    ]


def test_director_tool_in_execute_uses_core_prompt_only(invoker, registry):
    controller = DirectorController(invoker, registry=registry)
    transcript = [user("need a call sheet"), offer(Phase.EXECUTE)]
    controller.handle(transcript, "2", "Director")
    system_prompt = invoker.calls[0]["system_prompt"]
    assert system_prompt.startswith(controller.phase_prompts["core"])
    assert "PHASE: CONCEPT" not in system_prompt
    assert "PHASE: PLAN" not in system_prompt


def test_model_error_propagates(registry):
    controller = DirectorController(RecordingInvoker(error=ModelInvocationError("openai: down")), registry=registry)
    with pytest.raises(ModelInvocationError, match="openai: down"):
        controller.handle([], "hello", "Director")


def test_model_error_never_raised_for_scripted_replies(registry):
    controller = DirectorController(RecordingInvoker(error=ModelInvocationError("down")), registry=registry)
    response = controller.handle([], "start with budget", "Director")
    assert response.state.gate == Gate.BUDGET


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------

def test_provider_defaults_to_configured_backend(invoker, registry):
    controller = DirectorController(invoker, registry=registry, default_provider=Provider.GEMINI)
    response = controller.handle([], "hello", "Director")
    assert invoker.calls[0]["provider"] == Provider.GEMINI
    assert response.provider == "gemini"


@pytest.mark.parametrize("hint, expected", [("anthropic", Provider.ANTHROPIC), (" OpenAI ", Provider.OPENAI), ("", Provider.OPENAI)])
def test_provider_hint(controller, invoker, hint, expected):
    controller.handle([], "hello", "Director", hint)
    assert invoker.calls[0]["provider"] == expected


def test_provider_enum_hint_is_used_as_is(controller, invoker, caplog):
    with caplog.at_level(logging.WARNING, logger="director.controller"):
        response = controller.handle([], "hello", "Director", Provider.ANTHROPIC)
    assert invoker.calls[0]["provider"] == Provider.ANTHROPIC
    assert response.provider == "anthropic"
    assert "Unknown provider" not in caplog.text


def test_unknown_provider_hint_falls_back_with_warning(controller, invoker, caplog):
    with caplog.at_level(logging.WARNING, logger="director.controller"):
        controller.handle([], "hello", "Director", "llama")
    assert invoker.calls[0]["provider"] == Provider.OPENAI
    assert "Unknown provider 'llama'" in caplog.text


# ---------------------------------------------------------------------------
# Contract checks
# ---------------------------------------------------------------------------

def test_unknown_tool_rejected_before_any_classification(controller, invoker, monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("control logic ran")

    monkeypatch.setattr(classifiers, "requested_phase", boom)
    monkeypatch.setattr(phases, "accepted_jump", boom)
    monkeypatch.setattr(sequencer, "current_gate", boom)

    with pytest.raises(DirectorRequestError, match="Invalid toolSelector: not-a-real-tool"):
        controller.handle([], "start with budget", "not-a-real-tool")
    assert invoker.calls == []


@pytest.mark.parametrize("tool", ["", None])
def test_missing_tool_selector(controller, tool):
    with pytest.raises(DirectorRequestError, match="toolSelector is required"):
        controller.handle([], "hello", tool)


def test_transcript_must_be_a_list(controller):
    with pytest.raises(DirectorRequestError):
        controller.handle("hello", "hello", "Director")


def test_transcript_roles_are_checked(controller):
    with pytest.raises(DirectorRequestError, match="invalid role"):
        controller.handle([{"role": "system", "text": "x"}], "hello", "Director")


def test_known_tool_keys_accepted(controller, invoker):
    controller.handle([], "hello", "brief")
    controller.handle([], "hello", "LuxPixPro")
    assert len(invoker.calls) == 2


# ---------------------------------------------------------------------------
# Control-state token
# ---------------------------------------------------------------------------

def test_state_token_tracks_gate_without_markers(controller, invoker):
    first = controller.handle([], "start with budget", "Director")
    transcript = [user("start with budget"), assistant("(reply edited by client)")]

    second = controller.handle(transcript, "unknown budget, 10k", "Director", state=first.state)
    assert second.state.gate == Gate.SCOPE

    third = controller.handle(transcript, "2 days, simple", "Director", state=second.state.to_dict())
    assert third.state.gate == Gate.LOCATIONS
    assert invoker.calls == []


def test_state_token_overrides_stale_markers(controller, invoker):
    transcript = [user("start with budget"), gate(Gate.BUDGET)]
    controller.handle(transcript, "hello", "Director", state=ControlState())
    assert len(invoker.calls) == 1


def test_state_token_carries_offer(controller):
    state = ControlState(phase=Phase.CONCEPT, offered_phase=Phase.PLAN, offer_in_reply=True)
    response = controller.handle([], "2", "Director", state=state)
    assert response.state.gate == Gate.BUDGET
    assert response.state.accepted_phase == Phase.PLAN


def test_invalid_state_token(controller):
    with pytest.raises(DirectorRequestError, match="Invalid state token"):
        controller.handle([], "hello", "Director", state={"gate": "LUNCH"})


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------

def test_handle_request_returns_wire_payload(controller):
    result = controller.handle_request(
        {"transcript": [], "newUserText": "start with budget", "toolSelector": "Director"}
    )
    assert result == {
        "message": gate_prompt(Gate.BUDGET),
        "usage": None,
        "provider": "none",
        "state": {
            "phase": "PLAN",
            "gate": "BUDGET",
            "offered_phase": None,
            "accepted_phase": None,
            "offer_in_reply": False,
        },
    }


def test_handle_request_accepts_legacy_payload(controller, invoker):
    result = controller.handle_request(
        {
            "messages": [
                {"role": "user", "content": "hello"},
                {"role": "assistant", "content": "hi"},
                {"role": "user", "content": "a portrait series"},
            ],
            "toolType": "Director",
            "provider": "anthropic",
        }
    )
    assert result["provider"] == "anthropic"
    assert [m.content for m in invoker.calls[0]["messages"]] == ["hello", "hi", "a portrait series"]


def test_handle_request_rejects_bad_types(controller):
    with pytest.raises(DirectorRequestError, match="newUserText"):
        controller.handle_request({"transcript": [], "newUserText": 5, "toolSelector": "Director"})


def _three_turns(controller, use_state):
    transcript, state, replies = [], None, []
    for text in ["what's our budget look like?", "hmm let me think", "2"]:
        response = controller.handle(transcript, text, "Director", state=state if use_state else None)
        replies.append(response)
        transcript = transcript + [user(text), assistant(response.message)]
        state = response.state
    return replies


def test_offer_stays_open_across_a_non_choice_turn(controller):
    by_markers = _three_turns(controller, use_state=False)
    by_token = _three_turns(controller, use_state=True)

    assert by_markers[0].state.offered_phase == Phase.PLAN
    assert by_markers[1].state == ControlState(phase=Phase.CONCEPT, offered_phase=Phase.PLAN)
    assert by_markers[2].state == ControlState(phase=Phase.PLAN, accepted_phase=Phase.PLAN)
    assert [r.state for r in by_token] == [r.state for r in by_markers]


def test_gate_replies_keep_a_pending_offer(controller):
    offer_reply = controller.handle([], "need a call sheet for tomorrow", "Director")
    transcript = [user("need a call sheet for tomorrow"), assistant(offer_reply.message)]

    response = controller.handle(transcript, "start with budget", "Director", state=offer_reply.state)

    assert response.state.gate == Gate.BUDGET
    assert response.state.offered_phase == Phase.EXECUTE
    assert not response.state.offer_in_reply


@pytest.mark.parametrize("empty", [{}, None])
def test_empty_state_token_falls_back_to_markers(controller, invoker, empty):
    transcript = [user("start with budget"), gate(Gate.BUDGET)]
    response = controller.handle(transcript, "hello", "Director", state=empty)
    assert response.message == gate_prompt(Gate.BUDGET)
    assert invoker.calls == []


def test_empty_state_token_same_through_handle_request(controller, invoker):
    result = controller.handle_request(
        {
            "transcript": [
                {"role": "user", "text": "start with budget"},
                {"role": "assistant", "text": gate_prompt(Gate.BUDGET)},
            ],
            "newUserText": "hello",
            "toolSelector": "Director",
            "state": {},
        }
    )
    assert result["state"]["gate"] == "BUDGET"
    assert invoker.calls == []
