from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import yaml

from director.models import DIRECTOR_TOOL, Phase
from director.utils.io import read_text

CONFIGS_DIR = Path(__file__).resolve().parent / "configs"
PROMPTS_DIR = CONFIGS_DIR / "prompts"
TOOLS_FILE = CONFIGS_DIR / "tools.yaml"

_PLACEHOLDERS = ("core", "output_rules", "phase_model")


class ToolRegistry:
    def __init__(self, tools: Dict[str, str]) -> None:
        self._tools = dict(tools)

    @classmethod
    def load(cls, path: Path = TOOLS_FILE) -> "ToolRegistry":
        try:
            raw = yaml.safe_load(read_text(path)) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid tool registry {path}: {exc}") from exc
        shared = raw.get("shared") or {}
        tools: Dict[str, str] = {}
        for key, entry in (raw.get("tools") or {}).items():
            if key == DIRECTOR_TOOL:
                raise ValueError(f"{path}: '{DIRECTOR_TOOL}' is reserved and cannot be a tool key")
            tools[key] = _expand((entry or {}).get("prompt", ""), shared)
        return cls(tools)

    def is_known(self, selector: Optional[str]) -> bool:
        return selector == DIRECTOR_TOOL or selector in self._tools

    def block(self, selector: str) -> str:
        if selector == DIRECTOR_TOOL:
            return ""
        return self._tools.get(selector, "")


def _expand(template: str, shared: Dict[str, str]) -> str:
    text = template
    for name in _PLACEHOLDERS:
        text = text.replace("{" + name + "}", str(shared.get(name, "")).strip())
    return text.strip()


def load_phase_prompts(prompts_dir: Path = PROMPTS_DIR) -> Dict[str, str]:
    return {
        "core": read_text(prompts_dir / "director_core.md").strip(),
        Phase.CONCEPT.value: read_text(prompts_dir / "concept_rules.md").strip(),
        Phase.PLAN.value: read_text(prompts_dir / "plan_rules.md").strip(),
    }


def build_system_prompt(
    phase: Phase,
    tool_selector: str,
    registry: ToolRegistry,
    phase_prompts: Optional[Dict[str, str]] = None,
) -> str:
    """Global rules plus the block for the active phase.

    CONCEPT and PLAN have fixed rule blocks; EXECUTE and WRAP use the selected
    tool's prompt, which is empty for the Director itself.
    """
    prompts = phase_prompts or load_phase_prompts()
    phase = Phase(phase)
    if phase in (Phase.CONCEPT, Phase.PLAN):
        block = prompts[phase.value]
    else:
        block = registry.block(tool_selector)
    return f"{prompts['core']}\n\n{block}\n"
