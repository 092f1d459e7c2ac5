# matrix.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List

from .errors import ConfigurationError
from .model import Environment, Job, Pipeline, Step
from .predicates import Predicate, compile_predicate


def _check_unique(kind: str, names: List[str]) -> None:
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigurationError(f"Duplicate {kind} names found: {dupes}")


def validate(pipeline: Pipeline) -> Dict[str, Predicate]:
    """
    Check a pipeline definition and compile every step predicate.

    Returns step name -> compiled predicate. Raises ConfigurationError for
    anything that must stop the run before a job starts.
    """
    if not pipeline.steps:
        raise ConfigurationError(f"Pipeline {pipeline.name!r} declares no steps")
    if not pipeline.environments:
        raise ConfigurationError(f"Pipeline {pipeline.name!r} declares no environments")

    _check_unique("step", [s.name for s in pipeline.steps])
    _check_unique("environment", [e.name for e in pipeline.environments])

    compiled: Dict[str, Predicate] = {}
    for step in pipeline.steps:
        try:
            compiled[step.name] = compile_predicate(step.when)
        except ConfigurationError as e:
            e.details.setdefault("step", step.name)
            raise
    return compiled


def job_name(pipeline: Pipeline, environment: Environment) -> str:
    return f"{pipeline.name} ({environment.name})"


def expand(pipeline: Pipeline) -> List[Job]:
    """
    One job per declared environment, holding in declaration order every
    step whose predicate holds there.

    A step that no environment selects is dead configuration, not an error.
    """
    predicates = validate(pipeline)

    jobs: List[Job] = []
    for environment in pipeline.environments:
        descriptor = environment.descriptor()
        steps: List[Step] = [
            s for s in pipeline.steps if predicates[s.name].evaluate(descriptor)
        ]
        jobs.append(
            Job(
                name=job_name(pipeline, environment),
                environment=environment,
                steps=tuple(steps),
                env={**pipeline.job_env, **environment.env},
                global_env=dict(pipeline.env),
            )
        )
    return jobs


def select_environments(pipeline: Pipeline, only: Iterable[str]) -> Pipeline:
    """Restrict a pipeline to the named environments (order kept)."""
    wanted = list(only)
    if not wanted:
        return pipeline

    known = [e.name for e in pipeline.environments]
    missing = [n for n in wanted if n not in known]
    if missing:
        raise ConfigurationError(
            f"Unknown environment(s): {missing}",
            details={"known": known},
        )
    return replace(
        pipeline,
        environments=tuple(e for e in pipeline.environments if e.name in wanted),
    )
