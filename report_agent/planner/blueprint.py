from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from report_agent.planner.prompts import BLUEPRINT_PROMPT, PromptLibrary
from report_agent.tools.profile import Sample

logger = logging.getLogger(__name__)

_SQL_BLOCK = re.compile(r"```sql\s*([\s\S]*?)```", re.IGNORECASE)


@dataclass
class BlueprintResult:
    raw: str
    blueprint: str
    queries: List[str] = field(default_factory=list)


def split_statements(block: str) -> List[str]:
    """Split on semicolons outside quoted literals, identifiers and -- comments."""
    parts: List[str] = []
    buf: List[str] = []
    quote: Optional[str] = None
    comment = False
    prev = ""
    for ch in block:
        if comment:
            buf.append(ch)
            if ch == "\n":
                comment = False
            prev = ch
            continue
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
            prev = ch
            continue
        if ch == "-" and prev == "-":
            comment = True
            buf.append(ch)
            prev = ""
            continue
        prev = ch
        if ch in ("'", '"'):
            quote = ch
            buf.append(ch)
        elif ch == ";":
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    parts.append("".join(buf))
    return [p.strip() for p in parts if _has_code(p)]


def _has_code(fragment: str) -> bool:
    for line in fragment.splitlines():
        s = line.strip()
        if s and not s.startswith("--"):
            return True
    return False


def extract_queries(text: str) -> List[str]:
    queries: List[str] = []
    for m in _SQL_BLOCK.finditer(text):
        queries.extend(split_statements(m.group(1).strip()))
    return queries


def strip_query_blocks(text: str) -> str:
    return _SQL_BLOCK.sub("", text).strip()


def build_blueprint_prompt(template: str, sample: Sample) -> str:
    return f"{template}\n\n{sample.metadata()}\n\n{sample.to_csv()}"


def plan_blueprint(sample: Sample, llm, prompts: Optional[PromptLibrary] = None) -> BlueprintResult:
    """
    Ask the model for an analysis plan plus SQL, then split the two apart.

    A response without any fenced sql block is still a valid plan: the whole
    text becomes the blueprint and no queries are run.
    Transport failures from ``llm.invoke`` propagate unchanged.
    """
    prompts = prompts or PromptLibrary()
    prompt = build_blueprint_prompt(prompts.get(BLUEPRINT_PROMPT), sample)
    raw = llm.invoke(prompt)
    queries = extract_queries(raw)
    if not queries:
        logger.info("Planner response contained no SQL statements")
    return BlueprintResult(raw=raw, blueprint=strip_query_blocks(raw), queries=queries)
