"""The local pre-push gate.

A reduced version of the full pipeline that runs synchronously on the
developer's machine before a push: the leading steps marked ``pre_push``
(format check, lint, doc build in the stock pipeline), one implicit local
environment, same fail-fast semantics as a matrix job. Compiling, the
full test suite and leak detection are left to the full matrix.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional

from .errors import ConfigurationError
from .matrix import validate
from .model import LOCAL, Job, Pipeline, Step
from .result import JobResult
from .runner import Invoker, run_job


def local_steps(pipeline: Pipeline) -> List[Step]:
    """
    Return the pre-push steps of a pipeline.

    They must be a non-empty prefix of the declared step list and must not
    depend on the environment (no inclusion predicate).
    """
    validate(pipeline)

    selected = [s for s in pipeline.steps if s.pre_push]
    if not selected:
        raise ConfigurationError(
            f"Pipeline {pipeline.name!r} marks no steps for the pre-push gate"
        )

    prefix = list(pipeline.steps[: len(selected)])
    if prefix != selected:
        raise ConfigurationError(
            "Pre-push steps must be the leading steps of the pipeline",
            details={
                "pre_push": [s.name for s in selected],
                "declared": pipeline.step_names(),
            },
        )

    conditional = [s.name for s in selected if s.when is not None]
    if conditional:
        raise ConfigurationError(
            "Pre-push steps must not depend on the environment",
            details={"conditional": conditional},
        )
    return selected


def local_job(pipeline: Pipeline) -> Job:
    return Job(
        name=f"{pipeline.name} (pre-push)",
        environment=LOCAL,
        steps=tuple(local_steps(pipeline)),
        env=dict(pipeline.job_env),
        global_env=dict(pipeline.env),
    )


def run_local_gate(
    pipeline: Pipeline,
    *,
    repo_root: str | Path = ".",
    invoker: Optional[Invoker] = None,
    cancel: Optional[threading.Event] = None,
) -> JobResult:
    """Run the pre-push gate in the calling thread and return its result."""
    return run_job(local_job(pipeline), repo_root=repo_root, invoker=invoker, cancel=cancel)
