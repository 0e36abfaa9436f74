"""Exception hierarchy for the pickle runtime."""

from __future__ import annotations


class PickleRuntimeError(Exception):
    """Base class for every error raised by the runtime itself."""


class ConfigurationError(PickleRuntimeError):
    """Invalid run configuration detected before the run starts."""


class TagExpressionError(ConfigurationError):
    """A tag expression could not be parsed."""


class CompositeExecutionError(PickleRuntimeError):
    """Several scenarios raised errors the runner could not recover from."""

    def __init__(self, causes: list[BaseException]) -> None:
        self.causes = list(causes)
        summary = "; ".join(f"{type(cause).__name__}: {cause}" for cause in self.causes)
        super().__init__(f"{len(self.causes)} scenarios raised errors: {summary}")


class RunAborted(PickleRuntimeError):
    """The scheduling thread was interrupted; remaining work was cancelled."""
