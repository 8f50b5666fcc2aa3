from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    frequency_penalty: Optional[float] = 0.3
    repetition_penalty: Optional[float] = None
    timeout_sec: float = 120.0
    prompt_dir: Optional[str] = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=os.environ.get("OPENAI_API_KEY") or None,
            base_url=os.environ.get("OPENAI_BASE_URL") or None,
            model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
            temperature=_env_float("LLM_TEMPERATURE", 0.7),
            frequency_penalty=_env_float("LLM_FREQUENCY_PENALTY", 0.3),
            repetition_penalty=_env_float("LLM_REPETITION_PENALTY", None),
            timeout_sec=_env_float("LLM_TIMEOUT_SEC", 120.0),
            prompt_dir=os.environ.get("REPORT_AGENT_PROMPT_DIR") or None,
            log_level=os.environ.get("REPORT_AGENT_LOG_LEVEL", "WARNING").upper(),
        )
