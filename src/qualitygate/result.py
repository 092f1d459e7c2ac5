"""Result types for job and pipeline runs.

Defines the structured output of a run: per-step records, per-job terminal
states and the aggregated run verdict.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .errors import JobAborted, StepFailure


class StepOutcome(Enum):
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"


class JobState(Enum):
    """Terminal state of a job."""

    PASSED = "passed"  # All steps passed
    FAILED = "failed"  # Some step returned a failing status
    ABORTED = "aborted"  # Cancelled from outside before completion


class Verdict(Enum):
    PASS = "pass"
    FAIL = "fail"
    ABORTED = "aborted"


@dataclass
class StepResult:
    """Outcome and captured output of one step invocation."""

    name: str
    environment: str
    outcome: StepOutcome
    command: str = ""
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    hint: Optional[str] = None

    @property
    def output(self) -> str:
        if self.stdout and self.stderr:
            return self.stdout.rstrip("\n") + "\n" + self.stderr
        return self.stdout or self.stderr

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "environment": self.environment,
            "outcome": self.outcome.value,
            "command": self.command,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }
        if self.hint:
            result["hint"] = self.hint
        return result


@dataclass
class JobResult:
    """Terminal state of a job plus every step record it produced."""

    job: str
    environment: str
    state: JobState
    steps: List[StepResult] = field(default_factory=list)
    failed_step: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.state is JobState.PASSED

    @property
    def failure(self) -> Optional[StepResult]:
        """The step record that ended the job, if it did not pass."""
        if self.failed_step is None:
            return None
        for step in self.steps:
            if step.name == self.failed_step:
                return step
        return None

    def raise_for_state(self) -> None:
        """Raise StepFailure or JobAborted unless the job passed."""
        if self.state is JobState.PASSED:
            return
        failure = self.failure
        if self.state is JobState.ABORTED:
            raise JobAborted(job=self.job, step=self.failed_step)
        if failure is None:
            raise StepFailure(job=self.job, step="<none>", cmd="", exit_code=-1)
        raise StepFailure(
            job=self.job,
            step=failure.name,
            cmd=failure.command,
            exit_code=failure.exit_code if failure.exit_code is not None else -1,
            stdout=failure.stdout,
            stderr=failure.stderr,
            hint=failure.hint,
        )

    def to_dict(self) -> dict:
        return {
            "job": self.job,
            "environment": self.environment,
            "state": self.state.value,
            "failed_step": self.failed_step,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class RunVerdict:
    """Aggregate of all jobs in a pipeline run."""

    pipeline: str
    jobs: List[JobResult] = field(default_factory=list)

    @property
    def verdict(self) -> Verdict:
        """
        PASS iff every job passed. A single failed job makes the run FAIL
        regardless of the others; ABORTED only when nothing failed.
        """
        states = {j.state for j in self.jobs}
        if JobState.FAILED in states:
            return Verdict.FAIL
        if JobState.ABORTED in states:
            return Verdict.ABORTED
        return Verdict.PASS

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    def by_environment(self) -> Dict[str, JobResult]:
        return {j.environment: j for j in self.jobs}

    def summary(self) -> Dict[str, str]:
        """job name -> terminal state value."""
        return {j.job: j.state.value for j in self.jobs}

    def to_dict(self) -> dict:
        return {
            "pipeline": self.pipeline,
            "verdict": self.verdict.value,
            "jobs": [j.to_dict() for j in self.jobs],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
