import pytest

from report_agent.errors import InputError, PromptTemplateError, RunCancelledError, RunInProgressError, TransportError
from report_agent.pipeline.orchestrator import ReportPipeline, RunState
from report_agent.planner.prompts import PromptLibrary
from report_agent.utils.dataset import Dataset

DOC = "<!DOCTYPE html><html><body>Report</body></html>"

TWO_QUERIES = """Blueprint: revenue and customers.

```sql
SELECT SUM(amount) AS revenue FROM data;
SELECT name, COUNT(*) AS orders FROM data GROUP BY name ORDER BY name;
```
"""

THREE_QUERIES_ONE_BAD = """Blueprint.

```sql
SELECT COUNT(*) AS n FROM data;
SELECT region, SUM(amount) FROM data GROUP BY region;
SELECT MAX(amount) AS biggest FROM data;
```
"""


def test_happy_path(sales, scripted_llm):
    llm = scripted_llm(TWO_QUERIES, f"```html\n{DOC}\n```")
    handle = ReportPipeline(llm).start_run(sales)
    assert handle.state is RunState.DONE
    assert handle.done and handle.finished
    assert handle.report == DOC
    assert handle.error is None
    assert handle.percent == 100
    assert handle.blueprint == "Blueprint: revenue and customers."
    assert len(handle.results) == 2
    assert all(r.ok for r in handle.results)
    assert handle.results[0].result == [{"revenue": 2771.5}]
    assert len(llm.calls) == 2


def test_states_and_progress_are_ordered(sales, scripted_llm):
    events = []
    llm = scripted_llm(TWO_QUERIES, DOC)
    handle = ReportPipeline(llm, on_progress=events.append).start_run(sales)
    states = [e.state for e in events]
    assert states == [
        RunState.PLANNING,
        RunState.EXECUTING,
        RunState.SYNTHESIZING,
        RunState.SYNTHESIZING,
        RunState.DONE,
    ]
    assert [e.percent for e in events] == [10, 40, 60, 99, 100]
    assert events == handle.events


def test_zero_queries_still_reaches_done(sales, scripted_llm):
    llm = scripted_llm("Nothing to compute here.", "plain text report")
    handle = ReportPipeline(llm).start_run(sales)
    assert handle.state is RunState.DONE
    assert handle.queries == []
    assert handle.results == []
    assert handle.report == "plain text report"
    synth_prompt = llm.calls[1][0]
    assert synth_prompt.endswith("**QUERY RESULTS (computed from the full dataset):**\n")
    assert "**BLUEPRINT:**\nNothing to compute here." in synth_prompt


def test_one_bad_statement_among_three(sales, scripted_llm):
    llm = scripted_llm(THREE_QUERIES_ONE_BAD, DOC)
    handle = ReportPipeline(llm).start_run(sales)
    assert handle.state is RunState.DONE
    assert [r.ok for r in handle.results] == [True, False, True]
    error = handle.results[1].error
    assert "region" in error
    assert f"-- Query 2: SELECT region, SUM(amount) FROM data GROUP BY region\nERROR: {error}" in llm.calls[1][0]


def test_transport_failure_during_planning(sales, scripted_llm):
    boom = TransportError("HF API error 401: bad token")
    llm = scripted_llm(boom)
    events = []
    handle = ReportPipeline(llm, on_progress=events.append).start_run(sales)
    assert handle.state is RunState.FAILED
    assert handle.error is boom
    assert handle.report is None
    assert handle.step == "Report generation failed: HF API error 401: bad token"
    assert len(llm.calls) == 1
    assert [e.state for e in events] == [RunState.PLANNING, RunState.FAILED]
    assert handle.results == []


def test_transport_failure_during_synthesis_exposes_no_report(sales, scripted_llm):
    llm = scripted_llm(TWO_QUERIES, TransportError("timeout"))
    handle = ReportPipeline(llm).start_run(sales)
    assert handle.failed
    assert handle.report is None
    assert isinstance(handle.error, TransportError)
    assert len(handle.results) == 2
    assert handle.percent == 60


def test_empty_dataset_never_plans(scripted_llm):
    llm = scripted_llm()
    handle = ReportPipeline(llm).start_run(Dataset.from_records([], columns=["a"]))
    assert handle.state is RunState.FAILED
    assert handle.finished
    assert isinstance(handle.error, InputError)
    assert RunState.PLANNING not in [e.state for e in handle.events]
    assert llm.calls == []


def test_single_flight_rejects_second_run(sales, blocking_llm):
    llm = blocking_llm(TWO_QUERIES, DOC, "no sql", DOC)
    pipeline = ReportPipeline(llm)
    first = pipeline.start_run(sales, background=True)
    assert llm.started.wait(5)
    assert pipeline.busy
    with pytest.raises(RunInProgressError):
        pipeline.start_run(sales)
    llm.release.set()
    assert first.wait(5)
    assert first.done
    assert not pipeline.busy
    second = pipeline.start_run(sales)
    assert second.done
    assert second.run_id != first.run_id


def test_cancel_discards_inflight_planner_result(sales, blocking_llm):
    llm = blocking_llm(TWO_QUERIES, DOC)
    handle = ReportPipeline(llm).start_run(sales, background=True)
    assert llm.started.wait(5)
    handle.cancel()
    llm.release.set()
    assert handle.wait(5)
    assert handle.state is RunState.FAILED
    assert isinstance(handle.error, RunCancelledError)
    assert handle.report is None
    assert handle.results == []
    assert len(llm.calls) == 1


def test_missing_template_is_a_configuration_error(tmp_path, scripted_llm):
    (tmp_path / "blueprint-and-queries.txt").write_text("plan", encoding="utf-8")
    with pytest.raises(PromptTemplateError, match="report-from-results"):
        ReportPipeline(scripted_llm(), prompts=PromptLibrary(str(tmp_path)))


def test_each_run_is_independent(sales, scripted_llm):
    llm = scripted_llm(TransportError("down"), TWO_QUERIES, DOC)
    pipeline = ReportPipeline(llm)
    failed = pipeline.start_run(sales)
    ok = pipeline.start_run(sales)
    assert failed.failed
    assert ok.done
    assert ok.report == DOC
    assert failed.report is None


def test_cancel_after_executing_skips_synthesis(sales, blocking_llm):
    llm = blocking_llm(TWO_QUERIES, DOC)
    runs = []

    def cancel_on_execute(event):
        if event.state is RunState.EXECUTING:
            runs[0].cancel()

    handle = ReportPipeline(llm, on_progress=cancel_on_execute).start_run(sales, background=True)
    runs.append(handle)
    assert llm.started.wait(5)
    llm.release.set()
    assert handle.wait(5)
    assert handle.state is RunState.FAILED
    assert isinstance(handle.error, RunCancelledError)
    assert len(handle.results) == 2
    assert handle.report is None
    assert len(llm.calls) == 1
    assert RunState.SYNTHESIZING not in [e.state for e in handle.events]
