"""Per-turn orchestration for the Director conversation.

Every call is independent: the open gate and any accepted phase jump are
re-derived from the transcript (or from the caller's control-state token).
Branches, in priority order:

1. an open PLAN gate is enforced one gate per turn;
2. an unprepared jump out of CONCEPT gets a phase-jump offer;
3. entering PLAN runs the gates from BUDGET against the same message;
4. otherwise the turn goes to the model with a phase-specific system prompt.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from director.adapters.llm_base import to_chat_messages
from director.adapters.router import ModelRouter
from director.config import DirectorConfig
from director.gates import classifiers, responders, sequencer
from director import phases
from director.models import (
    ControlState,
    DirectorRequest,
    DirectorRequestError,
    DirectorResponse,
    Gate,
    Phase,
    Provider,
    Turn,
    coerce_transcript,
)
from director.prompts import ToolRegistry, build_system_prompt, load_phase_prompts

logger = logging.getLogger(__name__)


class DirectorController:
    def __init__(
        self,
        invoker: Any,
        registry: Optional[ToolRegistry] = None,
        default_provider: Provider = Provider.OPENAI,
        phase_prompts: Optional[Dict[str, str]] = None,
    ) -> None:
        self.invoker = invoker
        self.registry = registry or ToolRegistry.load()
        self.default_provider = Provider(default_provider)
        self.phase_prompts = phase_prompts or load_phase_prompts()

    @classmethod
    def from_config(cls, config: DirectorConfig, **kwargs: Any) -> "DirectorController":
        return cls(ModelRouter(config), default_provider=config.default_provider, **kwargs)

    def handle_request(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        request = DirectorRequest.from_dict(payload)
        response = self.handle(
            request.transcript,
            request.new_user_text,
            request.tool_selector,
            request.provider_selector,
            request.state,
        )
        return response.to_dict()

    def handle(
        self,
        transcript: Sequence[Any],
        new_user_text: str,
        tool_selector: str,
        provider_selector: Optional[str] = None,
        state: Optional[Any] = None,
    ) -> DirectorResponse:
        turns = self._check_contract(transcript, new_user_text, tool_selector)
        if not state:
            state = None
        elif not isinstance(state, ControlState):
            state = ControlState.from_dict(state)
        text = new_user_text
        accepted = phases.accepted_jump(turns, text, state)
        # An offer stays open until a jump is accepted.
        offered = None if accepted else phases.pending_offer(turns, state)

        open_gate = sequencer.current_gate(turns, state)
        if open_gate is not None:
            step = sequencer.advance(open_gate, text)
            if not step.cleared:
                logger.info("gate %s satisfied=%s", open_gate.value, step.satisfied)
                return self._gate_reply(step.next_gate, accepted, offered)
            logger.info("gate %s satisfied, all PLAN gates cleared", open_gate.value)
            phase = self._phase_after_gates(text)
            return self._delegate(
                turns, text, tool_selector, provider_selector, phase, accepted, offered
            )

        requested = classifiers.requested_phase(text)
        entering_plan = self._entering_plan(turns, text, state)
        if (
            requested is not None
            and requested != Phase.CONCEPT
            and accepted is None
            and not entering_plan
            and not classifiers.concept_complete(turns + [Turn(role="user", text=text)])
        ):
            logger.info("phase jump offer target=%s", requested.value)
            return DirectorResponse(
                message=responders.phase_jump_offer(requested),
                state=ControlState(phase=Phase.CONCEPT, offered_phase=requested, offer_in_reply=True),
            )

        if entering_plan:
            # Unlike step 1, this may clear several gates with one message.
            step = sequencer.run_from_budget(text)
            if not step.cleared:
                logger.info("entering PLAN, first open gate=%s", step.gate.value)
                return self._gate_reply(step.gate, accepted, offered)
            logger.info("entering PLAN, all gates answered in one message")
            phase = self._phase_after_gates(text)
            return self._delegate(
                turns, text, tool_selector, provider_selector, phase, accepted, offered
            )

        phase = phases.resolve(turns, text, state)
        return self._delegate(turns, text, tool_selector, provider_selector, phase, accepted, offered)

    def _check_contract(
        self, transcript: Sequence[Any], new_user_text: str, tool_selector: str
    ) -> List[Turn]:
        if not tool_selector:
            raise DirectorRequestError("toolSelector is required")
        turns = coerce_transcript(transcript)
        if not isinstance(new_user_text, str):
            raise DirectorRequestError("newUserText must be a string")
        if not isinstance(tool_selector, str) or not self.registry.is_known(tool_selector):
            raise DirectorRequestError(f"Invalid toolSelector: {tool_selector}")
        return turns

    def _entering_plan(
        self, turns: Sequence[Turn], text: str, state: Optional[ControlState]
    ) -> bool:
        return (
            classifiers.explicit_phase_request(text) == Phase.PLAN
            or classifiers.budget_first_request(text)
            or phases.just_accepted_jump(turns, text, state) == Phase.PLAN
            or classifiers.gate_answered(Gate.BUDGET, text)
        )

    def _phase_after_gates(self, text: str) -> Phase:
        return classifiers.explicit_phase_request(text) or Phase.PLAN

    def _gate_reply(
        self, gate: Gate, accepted: Optional[Phase], offered: Optional[Phase]
    ) -> DirectorResponse:
        return DirectorResponse(
            message=responders.gate_prompt(gate),
            state=ControlState(
                phase=Phase.PLAN, gate=gate, offered_phase=offered, accepted_phase=accepted
            ),
        )

    def _resolve_provider(self, provider_selector: Optional[str]) -> Provider:
        if provider_selector is None or provider_selector == "":
            return self.default_provider
        provider = Provider.parse(provider_selector)
        if provider is None:
            logger.warning(
                "Unknown provider %r, using default %s", provider_selector, self.default_provider.value
            )
            return self.default_provider
        return provider

    def _delegate(
        self,
        turns: Sequence[Turn],
        text: str,
        tool_selector: str,
        provider_selector: Optional[str],
        phase: Phase,
        accepted: Optional[Phase],
        offered: Optional[Phase],
    ) -> DirectorResponse:
        system_prompt = build_system_prompt(phase, tool_selector, self.registry, self.phase_prompts)
        provider = self._resolve_provider(provider_selector)
        messages = to_chat_messages(list(turns) + [Turn(role="user", text=text)])
        logger.info("model call phase=%s tool=%s provider=%s", phase.value, tool_selector, provider.value)
        response = self.invoker.invoke(messages, system_prompt, provider)
        return DirectorResponse(
            message=response.raw_text,
            usage=response.usage,
            provider=response.provider or provider.value,
            state=ControlState(phase=phase, offered_phase=offered, accepted_phase=accepted),
        )
