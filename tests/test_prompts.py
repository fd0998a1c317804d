from __future__ import annotations

import pytest

from director.models import Phase
from director.prompts import ToolRegistry, build_system_prompt, load_phase_prompts

EXPECTED_TOOLS = {
    "brief",
    "creative-direction",
    "shot-scene-book",
    "locations-sets",
    "casting-talent",
    "crew-list",
    "schedule",
    "budget",
    "call-sheet",
    "on-set-notes",
    "client-selects",
    "deliverables-licensing",
    "archive-log",
}


def test_registry_contains_workflow_tools(registry):
    assert all(registry.is_known(key) for key in EXPECTED_TOOLS)
    assert registry.is_known("storyboard")


def test_registry_expands_shared_fragments(registry):
    prompt = registry.block("budget")
    assert prompt.startswith("You are onFORMAT.")
    assert "OUTPUT RULES:" in prompt
    assert "{core}" not in prompt and "{output_rules}" not in prompt


def test_director_selector_is_known_with_empty_block(registry):
    assert registry.is_known("Director")
    assert registry.block("Director") == ""


def test_unknown_selector(registry):
    assert not registry.is_known("not-a-real-tool")
    assert not registry.is_known(None)
    assert registry.block("not-a-real-tool") == ""


def test_reserved_director_key(tmp_path):
    path = tmp_path / "tools.yaml"
    path.write_text("tools:\n  Director:\n    prompt: x\n", encoding="utf-8")
    with pytest.raises(ValueError, match="reserved"):
        ToolRegistry.load(path)


def test_invalid_yaml(tmp_path):
    path = tmp_path / "tools.yaml"
    path.write_text("tools: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid tool registry"):
        ToolRegistry.load(path)


@pytest.mark.parametrize("phase, marker", [(Phase.CONCEPT, "PHASE: CONCEPT"), (Phase.PLAN, "PHASE: PLAN")])
def test_concept_and_plan_use_rule_blocks(registry, phase, marker):
    prompt = build_system_prompt(phase, "call-sheet", registry)
    assert marker in prompt
    assert registry.block("call-sheet") not in prompt


@pytest.mark.parametrize("phase", [Phase.EXECUTE, Phase.WRAP])
def test_execute_and_wrap_use_tool_block(registry, phase):
    prompts = load_phase_prompts()
    prompt = build_system_prompt(phase, "deliverables-licensing", registry, prompts)
    assert prompt == f"{prompts['core']}\n\n{registry.block('deliverables-licensing')}\n"


def test_system_prompt_is_stable(registry):
    assert build_system_prompt(Phase.PLAN, "Director", registry) == build_system_prompt(
        Phase.PLAN, "Director", registry
    )
