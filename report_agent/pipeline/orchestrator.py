from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from report_agent.errors import InputError, ReportAgentError, RunCancelledError, RunInProgressError
from report_agent.exec.duck import QueryResult, StoreConfig
from report_agent.exec.runner import execute_queries
from report_agent.planner.blueprint import plan_blueprint
from report_agent.planner.prompts import BLUEPRINT_PROMPT, REPORT_PROMPT, PromptLibrary
from report_agent.report.synthesizer import synthesize_report
from report_agent.tools.profile import project_sample
from report_agent.utils.dataset import Dataset

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


# Indicative checkpoints, not a measure of remaining work.
PERCENT_PLANNING = 10
PERCENT_EXECUTING = 40
PERCENT_SYNTHESIZING = 60
PERCENT_FINALIZING = 99
PERCENT_DONE = 100


@dataclass(frozen=True)
class ProgressEvent:
    state: RunState
    step: str
    percent: int


ProgressCallback = Callable[[ProgressEvent], None]


class RunHandle:
    """
    Caller-facing view of one run.

    ``report`` is only set once the run is DONE and ``error`` only once it is
    FAILED. Every state change is appended to ``events`` and forwarded to the
    optional progress callback.
    """

    def __init__(self, on_progress: Optional[ProgressCallback] = None) -> None:
        self.run_id = uuid.uuid4().hex[:12]
        self.state = RunState.IDLE
        self.step = "Ready"
        self.percent = 0
        self.report: Optional[str] = None
        self.error: Optional[BaseException] = None
        self.events: List[ProgressEvent] = []
        self.blueprint: Optional[str] = None
        self.queries: List[str] = []
        self.results: List[QueryResult] = []
        self._on_progress = on_progress
        self._cancel = threading.Event()
        self._finished = threading.Event()
        self._lock = threading.Lock()

    @property
    def done(self) -> bool:
        return self.state is RunState.DONE

    @property
    def failed(self) -> bool:
        return self.state is RunState.FAILED

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def _emit(self, state: RunState, step: str, percent: int) -> None:
        with self._lock:
            self.state = state
            self.step = step
            self.percent = max(self.percent, percent)
            event = ProgressEvent(state=state, step=step, percent=self.percent)
            self.events.append(event)
        logger.info("[run %s] %s (%d%%): %s", self.run_id, state.value, event.percent, step)
        if self._on_progress:
            self._on_progress(event)

    def _complete(self, report: str) -> None:
        self.report = report
        self._emit(RunState.DONE, "Report generated successfully!", PERCENT_DONE)

    def _fail(self, error: BaseException) -> None:
        self.error = error
        self.report = None
        self._emit(RunState.FAILED, f"Report generation failed: {error}", self.percent)

    def _release(self) -> None:
        self._finished.set()


class ReportPipeline:
    """
    Plan -> execute -> synthesize, one run at a time.

    The model plans from a five-row sample; every planned statement then runs
    over the complete dataset before the results are handed back to the model
    for the final document.
    """

    def __init__(
        self,
        llm,
        prompts: Optional[PromptLibrary] = None,
        store_config: Optional[StoreConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.llm = llm
        self.prompts = prompts or PromptLibrary()
        self.store_config = store_config
        self.on_progress = on_progress
        # A missing template is a configuration error, so fail at construction.
        self.prompts.require(BLUEPRINT_PROMPT, REPORT_PROMPT)
        self._lock = threading.Lock()
        self._active: Optional[RunHandle] = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._active is not None

    def start_run(self, dataset: Dataset, background: bool = False) -> RunHandle:
        handle = RunHandle(on_progress=self.on_progress)
        if dataset is None or dataset.is_empty or not dataset.columns:
            logger.warning("Rejected run %s: dataset is empty", handle.run_id)
            handle._fail(InputError("Dataset is empty; nothing to analyze"))
            handle._release()
            return handle
        with self._lock:
            if self._active is not None:
                raise RunInProgressError(f"Run {self._active.run_id} is still in progress")
            self._active = handle
        if background:
            t = threading.Thread(target=self._run, args=(handle, dataset), name=f"report-run-{handle.run_id}", daemon=True)
            t.start()
        else:
            self._run(handle, dataset)
        return handle

    def _checkpoint(self, handle: RunHandle) -> None:
        if handle.cancel_requested:
            raise RunCancelledError("Run cancelled by caller")

    def _run(self, handle: RunHandle, dataset: Dataset) -> None:
        try:
            self._checkpoint(handle)
            handle._emit(RunState.PLANNING, "Reviewing dataset structure and planning the analysis...", PERCENT_PLANNING)
            plan = plan_blueprint(project_sample(dataset), self.llm, self.prompts)
            handle.blueprint = plan.blueprint
            handle.queries = list(plan.queries)

            self._checkpoint(handle)
            handle._emit(
                RunState.EXECUTING,
                f"Running {len(plan.queries)} queries over {len(dataset)} rows...",
                PERCENT_EXECUTING,
            )
            handle.results = execute_queries(dataset, plan.queries, self.store_config)

            self._checkpoint(handle)
            handle._emit(RunState.SYNTHESIZING, "Generating final comprehensive report...", PERCENT_SYNTHESIZING)
            report = synthesize_report(plan.blueprint, handle.results, self.llm, self.prompts)

            self._checkpoint(handle)
            handle._emit(RunState.SYNTHESIZING, "Finalizing report...", PERCENT_FINALIZING)
            handle._complete(report)
        except ReportAgentError as e:
            logger.error("Run %s failed during %s: %s", handle.run_id, handle.state.value, e)
            handle._fail(e)
        except Exception as e:
            logger.exception("Run %s failed unexpectedly during %s", handle.run_id, handle.state.value)
            handle._fail(e)
        finally:
            with self._lock:
                if self._active is handle:
                    self._active = None
            handle._release()
