"""Error taxonomy shared by every analysis stage."""

from typing import Any


class AnalysisError(Exception):
    """Base class for analysis failures.

    Keyword context (symbol, order, series name, ...) is kept as attributes so
    callers can report the offending input.
    """

    kind = 'AnalysisError'

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context
        for key, value in context.items():
            setattr(self, key, value)

    def __str__(self):
        if not self.context:
            return f"{self.kind}: {self.message}"
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.kind}: {self.message} ({details})"


class DataUnavailable(AnalysisError, ValueError):
    """Unknown symbol, bad date range or empty vendor response"""
    kind = 'DataUnavailable'


class InvalidInput(AnalysisError, ValueError):
    """Input cannot feed the requested computation"""
    kind = 'InvalidInput'


class NonConvergence(AnalysisError, RuntimeError):
    """Optimizer failed for a model fit"""
    kind = 'NonConvergence'


class TestFailed(AnalysisError, RuntimeError):
    """Underlying statistical routine errored"""
    __test__ = False  # not a pytest class
    kind = 'TestFailed'
