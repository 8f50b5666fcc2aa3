import threading

import pytest

from report_agent.utils.dataset import Dataset


class ScriptedLLM:
    """Returns canned responses in order; an exception instance is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def invoke(self, prompt, system_instruction=None):
        self.calls.append((prompt, system_instruction))
        resp = self.responses.pop(0)
        if isinstance(resp, BaseException):
            raise resp
        return resp


class BlockingLLM(ScriptedLLM):
    """Like ScriptedLLM but each call waits until ``release`` is set."""

    def __init__(self, *responses):
        super().__init__(*responses)
        self.started = threading.Event()
        self.release = threading.Event()

    def invoke(self, prompt, system_instruction=None):
        self.started.set()
        self.release.wait(5)
        return super().invoke(prompt, system_instruction)


def sales_rows(n=23):
    return [
        {"id": str(i), "name": f"customer_{i % 4}", "amount": f"{i * 10}.5", "date": f"2024-01-{i:02d}"}
        for i in range(1, n + 1)
    ]


@pytest.fixture
def sales():
    return Dataset.from_records(sales_rows())


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def blocking_llm():
    return BlockingLLM
