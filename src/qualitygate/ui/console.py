"""Console output formatting utilities for qualitygate."""

from __future__ import annotations

import sys
import threading
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..model import Job
    from ..result import JobResult, RunVerdict, StepResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, stream=None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            stream: Where normal output goes (defaults to sys.stdout at print time)
        """
        self.debug = debug
        self.stream = stream
        # Jobs print from worker threads; keep multi-line blocks together
        self._lock = threading.Lock()

    def _out(self):
        return self.stream or sys.stdout

    def _print(self, *lines: str) -> None:
        with self._lock:
            out = self._out()
            for line in lines:
                print(line, file=out)

    def print_run_started(self, pipeline: str, source: str, job_count: int) -> None:
        """Print run start information."""
        self._print("\nRUN STARTED", f"Pipeline: {pipeline}", f"Source: {source}", f"Jobs: {job_count}", "")

    def print_job_start(self, name: str) -> None:
        self._print(f"\nJOB STARTED: {name}")

    def print_step(self, job: str, step: str) -> None:
        self._print(f"[{job}] STEP: {step}")

    def print_success(self, job: str) -> None:
        self._print(f"[{job}] STATUS: success")

    def print_step_failure(self, job: str, result: "StepResult") -> None:
        """
        Print a failed step with its full captured output.

        Args:
            job: Job name
            result: The failing step's record
        """
        lines = [f"[{job}] STEP FAILED: {result.name}"]
        if result.exit_code is not None:
            lines.append(f"Exit code: {result.exit_code}")
        if result.hint:
            lines.append(f"Hint: {result.hint}")
        if result.output:
            lines.append("Output:")
            lines.extend(f"  {line}" for line in result.output.rstrip("\n").splitlines())
        self._print(*lines)

    def print_job_aborted(self, job: str, step: Optional[str]) -> None:
        where = f" during step '{step}'" if step else ""
        self._print(f"[{job}] STATUS: aborted{where}")

    def print_plan(self, jobs: list["Job"]) -> None:
        """Print the expanded matrix."""
        lines = []
        for job in jobs:
            lines.append(f"\n{job.name}")
            for idx, step in enumerate(job.steps, start=1):
                lines.append(f"  {idx}. {step.name}: {step.command_line}")
            if not job.steps:
                lines.append("  (no steps)")
        self._print(*lines)

    def print_results(self, verdict: "RunVerdict") -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for job in verdict.jobs:
            status_display = "SUCCESS" if job.passed else job.state.value.upper()
            if job.failed_step:
                status_display += f" (step: {job.failed_step})"
            lines.append(f"  {job.job}: {status_display}")
        lines.append(f"VERDICT: {verdict.verdict.value.upper()}")
        self._print(*lines)

    def print_gate_result(self, result: "JobResult") -> None:
        """Print the pre-push gate outcome."""
        if result.passed:
            self._print("\nPRE-PUSH GATE: passed")
        else:
            reason = f" at step '{result.failed_step}'" if result.failed_step else ""
            self._print(f"\nPRE-PUSH GATE: {result.state.value}{reason}; push rejected")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        with self._lock:
            print(f"\nERROR: {title}", file=sys.stderr)
            print(f"{message}", file=sys.stderr)
            if details:
                for detail in details:
                    print(f"  {detail}", file=sys.stderr)
            if suggestion:
                print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        self._print(message)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
