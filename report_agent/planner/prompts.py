from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

from report_agent.errors import PromptTemplateError

BLUEPRINT_PROMPT = "blueprint-and-queries"
REPORT_PROMPT = "report-from-results"

DEFAULT_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


class PromptLibrary:
    """Named text templates read from ``<directory>/<name>.txt``."""

    def __init__(self, directory: Optional[str] = None) -> None:
        directory = directory or os.environ.get("REPORT_AGENT_PROMPT_DIR")
        self.directory = Path(directory) if directory else DEFAULT_PROMPT_DIR

    def path(self, name: str) -> Path:
        return self.directory / f"{name}.txt"

    def get(self, name: str) -> str:
        p = self.path(name)
        try:
            return p.read_text(encoding="utf-8")
        except OSError as e:
            raise PromptTemplateError(f"Failed to read prompt template '{name}' from {p}: {e}") from e

    def require(self, *names: str) -> Dict[str, Path]:
        missing = [n for n in names if not self.path(n).is_file()]
        if missing:
            raise PromptTemplateError(f"Missing prompt templates in {self.directory}: {', '.join(missing)}")
        return {n: self.path(n) for n in names}
