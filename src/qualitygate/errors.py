# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class QualityGateError(Exception):
    """Base class for everything the runner raises on purpose."""


@dataclass
class ConfigurationError(QualityGateError):
    """
    Malformed pipeline definition.

    Always raised before any job starts: empty step list, empty environment
    set, malformed predicate, duplicate names, bad pre-push prefix.
    """
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [self.message]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(QualityGateError):
    job: str
    step: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    hint: str | None = None

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class JobAborted(QualityGateError):
    """The run was cancelled from outside while this job was in flight."""
    job: str
    step: str | None = None

    def __str__(self) -> str:
        if self.step:
            return f"[{self.job}] aborted during step '{self.step}'"
        return f"[{self.job}] aborted before start"
