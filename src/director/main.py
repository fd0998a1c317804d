from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from director.config import DirectorConfig
from director.controller import DirectorController
from director.models import (
    DIRECTOR_TOOL,
    ControlState,
    DirectorRequestError,
    ModelInvocationError,
    Turn,
    coerce_transcript,
)
from director.utils.io import read_json, write_json
from director.utils.time import utc_isoformat, utc_timestamp


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Director conversation controller")
    parser.add_argument("--mode", choices=["mock", "live"], default=None)
    parser.add_argument("--tool", default=DIRECTOR_TOOL, help="Tool selector (Director or a tool key)")
    parser.add_argument("--provider", default=None, help="Model backend hint: openai / anthropic / gemini")
    parser.add_argument("--transcript", default=None, help="JSON transcript file, read and updated each turn")
    parser.add_argument("--message", default=None, help="Send one message and exit")
    parser.add_argument("--env-file", default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser


def _load_session(path: Path) -> tuple[List[Turn], Optional[ControlState]]:
    if not path.exists():
        return [], None
    data = read_json(path)
    if isinstance(data, list):
        return coerce_transcript(data), None
    state = data.get("state")
    return coerce_transcript(data.get("transcript", [])), ControlState.from_dict(state) if state else None


def _save_session(path: Path, turns: List[Turn], state: Optional[ControlState]) -> None:
    write_json(
        path,
        {
            "updated_at": utc_isoformat(),
            "transcript": [turn.to_dict() for turn in turns],
            "state": state.to_dict() if state else None,
        },
    )


def run_turn(
    controller: DirectorController,
    session_path: Path,
    text: str,
    tool: str,
    provider: Optional[str],
) -> str:
    turns, state = _load_session(session_path)
    response = controller.handle(turns, text, tool, provider, state)
    turns.extend([Turn(role="user", text=text), Turn(role="assistant", text=response.message)])
    _save_session(session_path, turns, response.state)
    return f"{response.message}\n\n[provider={response.provider} phase={response.state.phase.value}]"


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = DirectorConfig.from_env(Path(args.env_file) if args.env_file else None)
    if args.mode:
        config.mode = args.mode
    controller = DirectorController.from_config(config)

    if args.transcript:
        session_path = Path(args.transcript)
    else:
        session_path = Path("runs") / utc_timestamp() / "transcript.json"

    try:
        if args.message is not None:
            print(run_turn(controller, session_path, args.message, args.tool, args.provider))
            return 0

        print(f"Director ({config.mode}). Transcript: {session_path}. Ctrl-D to exit.")
        while True:
            try:
                text = input("> ")
            except EOFError:
                print()
                return 0
            if not text.strip():
                continue
            print(run_turn(controller, session_path, text, args.tool, args.provider))
    except DirectorRequestError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except ModelInvocationError as exc:
        print(f"model error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
