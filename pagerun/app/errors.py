"""
Error taxonomy for the run pipeline.

Every error raised by the core derives from PipelineError. Errors raised
by injected collaborators (collector, store, evaluator, scorer, renderer)
are never wrapped and pass through the orchestrator unmodified.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


class PipelineError(Exception):
    """Base class for all errors raised by the run pipeline itself."""


# ---------------------------------------------------------------------------
# Configuration / invocation errors
# ---------------------------------------------------------------------------

class MissingPassesConfig(PipelineError):
    def __init__(self) -> None:
        super().__init__("No passes in config to run")


class MissingTarget(PipelineError):
    def __init__(self, provided: object) -> None:
        self.provided = provided
        super().__init__(
            f"You must provide a url to the runner. '{provided}' provided."
        )


class InvalidTarget(PipelineError):
    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(
            "The url provided should have a proper protocol and hostname. "
            f"Got '{url}'."
        )


class MissingAuditsConfig(PipelineError):
    def __init__(self) -> None:
        super().__init__("No audits in config to evaluate")


# ---------------------------------------------------------------------------
# Consistency guard errors
# ---------------------------------------------------------------------------

class TargetMismatch(PipelineError):
    def __init__(self, requested_url: str, recorded_url: str) -> None:
        self.requested_url = requested_url
        self.recorded_url = recorded_url
        super().__init__(
            "Cannot run audit mode on different URL than gatherers were: "
            f"requested '{requested_url}', artifacts recorded '{recorded_url}'"
        )


class SettingsMismatch(PipelineError):
    def __init__(self, fields: Iterable[str]) -> None:
        self.fields: Tuple[str, ...] = tuple(fields)
        super().__init__(
            "Cannot change settings between gathering and auditing "
            f"(differing: {', '.join(self.fields)})"
        )


# ---------------------------------------------------------------------------
# Computed artifact errors
# ---------------------------------------------------------------------------

class CircularDependency(PipelineError):
    def __init__(self, name: str, via: Optional[str] = None) -> None:
        self.name = name
        self.via = via
        if via is None or via == name:
            message = f"Computed artifact '{name}' requested itself"
        else:
            message = (
                f"Computed artifact '{via}' requested '{name}', "
                f"which is already waiting on '{via}'"
            )
        super().__init__(message)


class UnknownComputedArtifact(PipelineError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No computed artifact registered as '{name}'")

    def __str__(self) -> str:
        return self.args[0]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class UnsupportedOutputFormat(PipelineError, ValueError):
    def __init__(self, output: str) -> None:
        self.output = output
        super().__init__(f"Output format '{output}' is not supported")
