"""Director: phase-gated conversation controller in front of an LLM backend."""

from director.config import DirectorConfig
from director.controller import DirectorController
from director.models import (
    ControlState,
    DirectorRequest,
    DirectorRequestError,
    DirectorResponse,
    Gate,
    ModelInvocationError,
    Phase,
    Provider,
    Turn,
)

__all__ = [
    "ControlState",
    "DirectorConfig",
    "DirectorController",
    "DirectorRequest",
    "DirectorRequestError",
    "DirectorResponse",
    "Gate",
    "ModelInvocationError",
    "Phase",
    "Provider",
    "Turn",
]
