from __future__ import annotations


class ReportAgentError(Exception):
    """Base class for errors that can fail a report run."""


class InputError(ReportAgentError):
    """The dataset is empty or malformed; raised before any stage starts."""


class TransportError(ReportAgentError):
    """The LLM call failed (network, authentication, quota, model)."""


class PromptTemplateError(ReportAgentError):
    """A named prompt template is missing. This is a configuration problem."""


class RunInProgressError(ReportAgentError):
    pass


class RunCancelledError(ReportAgentError):
    pass
