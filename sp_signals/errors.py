# sp_signals/errors.py
from __future__ import annotations


class SignalPipelineError(Exception):
    """Base class for pipeline errors."""


class MissingInputError(SignalPipelineError):
    """A required artifact or column is absent. Never retried."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class EmptyDataError(SignalPipelineError):
    """Nothing left to work with after filtering."""


class DegenerateMetricError(SignalPipelineError, ArithmeticError):
    """A ratio metric has a zero denominator."""


class StaleComputationError(SignalPipelineError):
    """A recomputation finished after a newer one was requested."""

    def __init__(self, request_id: int, latest_id: int):
        super().__init__(f"request {request_id} superseded by {latest_id}")
        self.request_id = request_id
        self.latest_id = latest_id
