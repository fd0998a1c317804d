from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from director.models import Provider

MODES = ("live", "mock")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class DirectorConfig:
    """Process-wide settings, resolved once at startup and passed in explicitly."""

    mode: str = "live"
    default_provider: Provider = Provider.OPENAI
    fallback_enabled: bool = True
    max_output_tokens: int = 4096
    temperature: Optional[float] = None
    openai_model: str = "gpt-4-turbo-preview"
    anthropic_model: str = "claude-3-haiku-20240307"
    gemini_model: str = "gemini-flash-latest"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unsupported mode: {self.mode} (expected one of {', '.join(MODES)})")
        provider = Provider.parse(self.default_provider)
        if provider is None:
            raise ValueError(f"Unsupported default provider: {self.default_provider}")
        self.default_provider = provider
        if self.max_output_tokens <= 0:
            raise ValueError("max_output_tokens must be positive")

    @classmethod
    def from_env(
        cls, env_file: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
    ) -> "DirectorConfig":
        if environ is None:
            if env_file is not None:
                load_dotenv(env_file)
            else:
                load_dotenv()
            environ = os.environ
        temperature = environ.get("DIRECTOR_TEMPERATURE", "").strip()
        return cls(
            mode=environ.get("DIRECTOR_MODE", "live").strip().lower(),
            default_provider=environ.get("DIRECTOR_DEFAULT_PROVIDER", Provider.OPENAI.value),
            fallback_enabled=_env_bool(environ, "DIRECTOR_PROVIDER_FALLBACK", True),
            max_output_tokens=int(environ.get("DIRECTOR_MAX_OUTPUT_TOKENS", "4096")),
            temperature=float(temperature) if temperature else None,
            openai_model=environ.get("OPENAI_MODEL", cls.openai_model),
            anthropic_model=environ.get("ANTHROPIC_MODEL", cls.anthropic_model),
            gemini_model=environ.get("GEMINI_MODEL", cls.gemini_model),
            openai_api_key=environ.get("OPENAI_API_KEY") or None,
            anthropic_api_key=environ.get("ANTHROPIC_API_KEY") or None,
            gemini_api_key=environ.get("GEMINI_API_KEY") or None,
        )

    def api_key(self, provider: Provider) -> Optional[str]:
        return {
            Provider.OPENAI: self.openai_api_key,
            Provider.ANTHROPIC: self.anthropic_api_key,
            Provider.GEMINI: self.gemini_api_key,
        }[Provider(provider)]

    def model_for(self, provider: Provider) -> str:
        return {
            Provider.OPENAI: self.openai_model,
            Provider.ANTHROPIC: self.anthropic_model,
            Provider.GEMINI: self.gemini_model,
        }[Provider(provider)]


def _env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")
