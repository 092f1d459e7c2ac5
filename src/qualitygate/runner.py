# runner.py
from __future__ import annotations

import logging
import os
import runpy
import signal
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .errors import ConfigurationError
from .matrix import expand, select_environments
from .model import Job, Pipeline, Step
from .result import JobResult, JobState, RunVerdict, StepOutcome, StepResult
from .ui.console import get_console

logger = logging.getLogger(__name__)

# local edit ---> pre-push gate ---> push ---> full matrix

TOOL_HINTS = {
    "cargo": "Install the Rust toolchain (https://rustup.rs) or fix PATH.",
    "rustup": "Install rustup (https://rustup.rs) or fix PATH.",
    "rustfmt": "Install rustfmt: rustup component add rustfmt",
    "cargo-clippy": "Install clippy: rustup component add clippy",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "python3": "Install Python 3 or fix PATH (python3).",
    "git": "Install Git or fix PATH.",
}

# Exit code reported when the command or its cwd cannot be found
EXIT_NOT_FOUND = 127
# Exit code reported when the command exists but cannot be executed
EXIT_NOT_EXECUTABLE = 126

# How often a running step checks for cancellation, and how long a
# terminated step gets before it is killed.
POLL_INTERVAL = 0.1
TERMINATE_GRACE = 5.0


# ----------------------------------------------------------------------
# Step invocation boundary
# ----------------------------------------------------------------------

@dataclass
class Invocation:
    """What an invoker returns for one step."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    cancelled: bool = False
    hint: str | None = None


Invoker = Callable[[Step, Mapping[str, str], Path, threading.Event], Invocation]


def _popen_group_kwargs() -> dict:
    # Own process group, so cancellation reaches everything the step spawned
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _stop_tree(proc: subprocess.Popen, *, force: bool) -> None:
    """Terminate (or kill) a step's child and all of its descendants."""
    if os.name == "nt":
        args = ["taskkill", "/T", "/PID", str(proc.pid)]
        if force:
            args.insert(1, "/F")
        subprocess.run(args, capture_output=True, check=False)
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
    except ProcessLookupError:
        pass


def subprocess_invoker(
    step: Step,
    env: Mapping[str, str],
    cwd: Path,
    cancel: threading.Event,
) -> Invocation:
    """
    Run a step as a child process, blocking until it exits.

    The resolved scope is layered on top of the current process environment.
    Output is decoded as UTF-8; undecodable bytes are replaced, never fatal.
    If ``cancel`` is set while the child runs, its whole process group is
    terminated (then killed after TERMINATE_GRACE seconds) and the
    invocation is marked cancelled.
    """
    full_env = os.environ.copy()
    full_env.update(env)

    argv = step.run if step.shell else [step.run, *step.args]
    try:
        proc = subprocess.Popen(
            argv,
            shell=step.shell,
            cwd=str(cwd),
            env=full_env,
            encoding="utf-8",
            errors="replace",
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **_popen_group_kwargs(),
        )
    except FileNotFoundError:
        return Invocation(
            exit_code=EXIT_NOT_FOUND,
            stderr=f"command not found: {step.run}",
            hint=TOOL_HINTS.get(step.run, f"Install {step.run} or fix PATH."),
        )
    except OSError as e:
        return Invocation(
            exit_code=EXIT_NOT_EXECUTABLE if isinstance(e, PermissionError) else EXIT_NOT_FOUND,
            stderr=f"cannot execute {step.run}: {e}",
            hint=f"Check that {step.run} is an executable program.",
        )

    while True:
        try:
            stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
            return Invocation(exit_code=proc.returncode, stdout=stdout, stderr=stderr)
        except subprocess.TimeoutExpired:
            if not cancel.is_set():
                continue

        _stop_tree(proc, force=False)
        try:
            stdout, stderr = proc.communicate(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            _stop_tree(proc, force=True)
            stdout, stderr = proc.communicate()
        return Invocation(
            exit_code=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            cancelled=True,
        )


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _log_step(job: Job, result: StepResult) -> None:
    level = logging.INFO if result.outcome is StepOutcome.PASSED else logging.ERROR
    logger.log(
        level,
        "[%s] step %r %s (exit=%s)",
        job.name,
        result.name,
        result.outcome.value,
        result.exit_code,
        extra={
            "step": result.name,
            "environment": result.environment,
            "outcome": result.outcome.value,
            "exit_code": result.exit_code,
            "output": result.output,
        },
    )


def run_step(
    job: Job,
    step: Step,
    *,
    repo_root: Path,
    invoker: Invoker,
    cancel: threading.Event,
) -> StepResult:
    env = job.env_for(step)
    started = time.monotonic()

    cwd = (repo_root / (step.cwd or ".")).resolve()
    if not cwd.is_dir():
        inv = Invocation(
            exit_code=EXIT_NOT_FOUND,
            stderr=f"[{job.name}] step '{step.name}' cwd not found or not a directory: {cwd}",
        )
    else:
        logger.debug("[%s] %s (env=%s)", job.name, step.command_line, env)
        inv = invoker(step, env, cwd, cancel)

    # A child killed by the same interrupt that cancelled the run has not
    # failed validation.
    if inv.cancelled or (inv.exit_code != 0 and cancel.is_set()):
        outcome = StepOutcome.ABORTED
    elif inv.exit_code == 0:
        outcome = StepOutcome.PASSED
    else:
        outcome = StepOutcome.FAILED

    result = StepResult(
        name=step.name,
        environment=job.environment.name,
        outcome=outcome,
        command=step.command_line,
        exit_code=inv.exit_code,
        stdout=inv.stdout or "",
        stderr=inv.stderr or "",
        duration_ms=int((time.monotonic() - started) * 1000),
        hint=inv.hint,
    )
    _log_step(job, result)
    return result


def run_job(
    job: Job,
    *,
    repo_root: str | Path = ".",
    invoker: Optional[Invoker] = None,
    cancel: Optional[threading.Event] = None,
) -> JobResult:
    """
    Run a job's steps strictly in order.

    The first failing step ends the job; later steps are never invoked.
    """
    console = get_console()
    invoker = invoker or subprocess_invoker
    cancel = cancel or threading.Event()
    root = Path(repo_root).resolve()

    console.print_job_start(job.name)
    records: List[StepResult] = []

    if cancel.is_set():
        console.print_job_aborted(job.name, None)
        return JobResult(
            job=job.name,
            environment=job.environment.name,
            state=JobState.ABORTED,
        )

    for step in job.steps:
        if cancel.is_set():
            console.print_job_aborted(job.name, None)
            return JobResult(
                job=job.name,
                environment=job.environment.name,
                state=JobState.ABORTED,
                steps=records,
            )

        console.print_step(job.name, step.name)
        result = run_step(job, step, repo_root=root, invoker=invoker, cancel=cancel)
        records.append(result)

        if result.outcome is StepOutcome.ABORTED:
            console.print_job_aborted(job.name, step.name)
            return JobResult(
                job=job.name,
                environment=job.environment.name,
                state=JobState.ABORTED,
                steps=records,
                failed_step=step.name,
            )
        if result.outcome is StepOutcome.FAILED:
            console.print_step_failure(job.name, result)
            return JobResult(
                job=job.name,
                environment=job.environment.name,
                state=JobState.FAILED,
                steps=records,
                failed_step=step.name,
            )

    console.print_success(job.name)
    return JobResult(
        job=job.name,
        environment=job.environment.name,
        state=JobState.PASSED,
        steps=records,
    )


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_pipeline(
    pipeline: Pipeline,
    *,
    repo_root: str | Path = ".",
    max_workers: int | None = None,
    only: Iterable[str] = (),
    invoker: Optional[Invoker] = None,
    cancel: Optional[threading.Event] = None,
) -> RunVerdict:
    """
    Expand the matrix and run every job.

    Expansion errors raise ConfigurationError before any job starts. A job's
    failure never cancels its siblings; only ``cancel`` stops the run.
    """
    pipeline = select_environments(pipeline, only)
    jobs = expand(pipeline)
    cancel = cancel or threading.Event()

    if max_workers is None:
        max_workers = len(jobs)
    max_workers = max(1, max_workers)

    results: Dict[str, JobResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(
                run_job, job, repo_root=repo_root, invoker=invoker, cancel=cancel
            ): job
            for job in jobs
        }
        for future in as_completed(futures):
            job = futures[future]
            try:
                results[job.name] = future.result()
            except Exception:
                logger.exception("[%s] job crashed", job.name)
                results[job.name] = JobResult(
                    job=job.name,
                    environment=job.environment.name,
                    state=JobState.FAILED,
                )

    # Report in declaration order, not completion order
    return RunVerdict(pipeline=pipeline.name, jobs=[results[j.name] for j in jobs])


# ----------------------------------------------------------------------
# Pipeline loading (local file)
# ----------------------------------------------------------------------

def load_pipeline(path: str | Path) -> Pipeline:
    """
    Load a pipeline from a python file path.

    The file must define either:
      - pipeline() -> Pipeline
      - PIPELINE = Pipeline(...)
    """
    pl_path = Path(path).expanduser().resolve()
    if not pl_path.exists():
        raise ConfigurationError(f"Pipeline file not found: {pl_path}")
    if pl_path.suffix != ".py":
        raise ConfigurationError(f"Pipeline must be a .py file, got: {pl_path.name}")

    module_name = f"qualitygate_pipeline_{pl_path.stem}"
    try:
        globals_dict = runpy.run_path(str(pl_path), run_name=module_name)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load pipeline file: {type(e).__name__}: {e}",
            details={"file": str(pl_path)},
        ) from e

    pipeline = None
    if "pipeline" in globals_dict and callable(globals_dict["pipeline"]):
        try:
            pipeline = globals_dict["pipeline"]()
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"pipeline() raised {type(e).__name__}: {e}",
                details={"file": str(pl_path)},
            ) from e
    elif "PIPELINE" in globals_dict:
        pipeline = globals_dict["PIPELINE"]

    if not isinstance(pipeline, Pipeline):
        raise ConfigurationError(
            "Pipeline file must return/define a Pipeline. "
            "Define pipeline() -> Pipeline or PIPELINE = Pipeline(...).",
            details={"file": str(pl_path)},
        )
    return pipeline
