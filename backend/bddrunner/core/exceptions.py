"""Errors raised while executing a run."""

from __future__ import annotations


class RunError(Exception):
    """A fatal error that ends a run with status ``failed``."""


class ProvisioningError(RunError):
    """Workspace creation or repository clone failed."""


class ConfigurationError(RunError):
    """The cloned repository cannot run the requested target."""


class ReportParseError(Exception):
    """A report file could not be parsed. Recovered by the result locator."""


class InvalidRunTransition(Exception):
    """An update tried to move a finished run back to a non-terminal status."""

    def __init__(self, run_id: str, current: str, requested: str) -> None:
        super().__init__(f"Run {run_id} is {current}; cannot move it to {requested}")
        self.run_id = run_id
        self.current = current
        self.requested = requested
