import logging
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from report_agent.config import Settings
from report_agent.errors import InputError, PromptTemplateError
from report_agent.exec.duck import StoreConfig
from report_agent.pipeline.orchestrator import ReportPipeline, RunHandle
from report_agent.planner.llm_client import OpenAIChatClient
from report_agent.planner.prompts import PromptLibrary
from report_agent.report.reporter import default_report_path, write_report
from report_agent.utils.dataset import Dataset, load_csv


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _render_dataset(console: Console, path: str, dataset: Dataset) -> None:
    console.print(Panel.fit(f"Loaded dataset: {path}\n{len(dataset)} records, {len(dataset.columns)} columns"))
    table = Table(title="preview (first 5 rows)")
    for name in dataset.columns:
        table.add_column(name)
    for row in dataset.head(5):
        table.add_row(*[escape(row[c]) for c in dataset.columns])
    console.print(table)


def _render_queries(console: Console, handle: RunHandle) -> None:
    table = Table(title=f"planned queries ({len(handle.queries)})")
    table.add_column("#", justify="right")
    table.add_column("statement")
    table.add_column("status")
    for i, res in enumerate(handle.results, start=1):
        status = f"{len(res.result or [])} rows" if res.ok else f"[red]ERROR[/red] {escape(res.error or '')}"
        table.add_row(str(i), escape(res.statement), status)
    console.print(table)


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    import argparse
    load_dotenv()
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="report-agent", description="Turn a CSV file into an analytical HTML report")
    parser.add_argument("path", help="CSV file to analyze")
    parser.add_argument("--out", dest="out", default=None, help="Where to write the report (defaults to <name>_report.html)")
    parser.add_argument("--model", dest="model", default=settings.model)
    parser.add_argument("--prompt-dir", dest="prompt_dir", default=settings.prompt_dir)
    parser.add_argument("--show-queries", dest="show_queries", action="store_true", default=False)
    parser.add_argument("--no-type-inference", dest="infer_types", action="store_false", default=True)
    parser.add_argument("--log-level", dest="log_level", default=settings.log_level)
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    console = Console()
    settings.model = args.model

    try:
        dataset = load_csv(args.path)
    except (FileNotFoundError, InputError) as e:
        console.print(Panel.fit(str(e), title="input error"))
        return 2
    _render_dataset(console, args.path, dataset)

    try:
        prompts = PromptLibrary(args.prompt_dir)
        with Progress(TextColumn("{task.description}"), BarColumn(), TextColumn("{task.percentage:>3.0f}%"), console=console, transient=True) as progress:
            task = progress.add_task("Loading data and initializing...", total=100)
            pipeline = ReportPipeline(
                OpenAIChatClient(settings),
                prompts=prompts,
                store_config=StoreConfig(infer_types=args.infer_types),
                on_progress=lambda ev: progress.update(task, completed=ev.percent, description=ev.step),
            )
            handle = pipeline.start_run(dataset)
    except PromptTemplateError as e:
        console.print(Panel.fit(str(e), title="configuration error"))
        return 2

    if args.show_queries and handle.queries:
        _render_queries(console, handle)

    if handle.failed:
        console.print(Panel.fit(escape(handle.step), title="failed", border_style="red"))
        return 1

    out = write_report(args.out or default_report_path(args.path), handle.report or "")
    failed = sum(1 for r in handle.results if not r.ok)
    summary = f"Report written to {out}\n{len(handle.results)} queries run over {len(dataset)} rows"
    if failed:
        summary += f" ({failed} failed)"
    console.print(Panel.fit(summary, title="done"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
