from __future__ import annotations

import json
import logging
import re
from typing import List, Optional, Sequence

from report_agent.exec.duck import QueryResult
from report_agent.planner.prompts import REPORT_PROMPT, PromptLibrary
from report_agent.report.reporter import to_jsonable

logger = logging.getLogger(__name__)

REPORT_SYSTEM_MESSAGE = " ".join([
    "You are an HTML report generator.",
    "You output ONLY a single, complete, valid HTML document - nothing else.",
    "The document must start with <!DOCTYPE html> and end with </html>.",
    "Every opened tag must be closed. The HTML must render correctly in a browser.",
    "Do NOT output markdown, explanations, or commentary - ONLY the HTML.",
    "Keep the report concise: aim for under 300 lines of HTML.",
])

_HTML_BLOCK = re.compile(r"```html\s*([\s\S]*?)```", re.IGNORECASE)
_HTML_DOC = re.compile(r"(<!DOCTYPE html[\s\S]*</html>)", re.IGNORECASE)


def format_query_results(results: Sequence[QueryResult], max_rows: int = 100) -> str:
    blocks: List[str] = []
    for i, r in enumerate(results, start=1):
        header = f"-- Query {i}: {r.statement}"
        if not r.ok:
            blocks.append(f"{header}\nERROR: {r.error}")
            continue
        rows = r.result or []
        body = json.dumps(to_jsonable(rows, max_rows=max_rows), indent=2, ensure_ascii=False)
        if len(rows) > max_rows:
            body += f"\n... ({len(rows) - max_rows} more rows not shown)"
        blocks.append(f"{header}\n{body}")
    return "\n\n".join(blocks)


def build_report_prompt(template: str, blueprint: str, results: Sequence[QueryResult]) -> str:
    return (
        f"{template}\n\n"
        f"**BLUEPRINT:**\n{blueprint}\n\n"
        f"**QUERY RESULTS (computed from the full dataset):**\n{format_query_results(results)}"
    )


def extract_html(text: str) -> str:
    # Models do not always honour the fencing instruction, so fall back in steps.
    m = _HTML_BLOCK.search(text)
    if m:
        return m.group(1).strip()
    m = _HTML_DOC.search(text)
    if m:
        return m.group(1).strip()
    logger.info("Synthesizer response had no HTML block or document; using raw text")
    return text.strip()


def synthesize_report(blueprint: str, results: Sequence[QueryResult], llm, prompts: Optional[PromptLibrary] = None) -> str:
    prompts = prompts or PromptLibrary()
    prompt = build_report_prompt(prompts.get(REPORT_PROMPT), blueprint, results)
    return extract_html(llm.invoke(prompt, REPORT_SYSTEM_MESSAGE))
