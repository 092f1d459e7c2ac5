# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .predicates import PredicateLike


def _freeze(obj: Any, *names: str) -> None:
    # Replace mapping fields with read-only copies
    for name in names:
        object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name) or {})))


@dataclass(frozen=True)
class Step:
    """
    A single validation command inside a pipeline.

    ``run`` is either a shell line (``args`` empty) or a program name that is
    executed directly with ``args``.
    """
    name: str
    run: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    when: PredicateLike = None
    cwd: str | None = None

    # Part of the local pre-push gate
    pre_push: bool = False

    def __post_init__(self):
        _freeze(self, "env")

    @property
    def shell(self) -> bool:
        return not self.args

    @property
    def command_line(self) -> str:
        if self.shell:
            return self.run
        return " ".join([self.run, *self.args])


@dataclass(frozen=True)
class Environment:
    """Where a job runs: a name plus a key/value descriptor (e.g. os family)."""
    name: str
    attrs: Mapping[str, Any] = field(default_factory=dict)
    # Joins the job scope of the job expanded for this environment
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        _freeze(self, "attrs", "env")

    def descriptor(self) -> Dict[str, Any]:
        return {"name": self.name, **dict(self.attrs)}


LOCAL = Environment(name="local")


@dataclass(frozen=True)
class Job:
    """
    One environment's ordered list of applicable steps.

    ``global_env`` is inherited from the pipeline; ``env`` is the job scope.
    """
    name: str
    environment: Environment
    steps: Tuple[Step, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    global_env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        _freeze(self, "env", "global_env")

    def env_for(self, step: Step) -> Dict[str, str]:
        return resolve_env(self.global_env, self.env, step.env)


@dataclass(frozen=True)
class Pipeline:
    name: str
    steps: Tuple[Step, ...]
    environments: Tuple[Environment, ...]

    # Applied to every step of every job
    env: Mapping[str, str] = field(default_factory=dict)
    # Applied to every expanded job, overriding ``env``
    job_env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        _freeze(self, "env", "job_env")

    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]


def resolve_env(*scopes: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Merge env scopes from outermost to innermost; last write wins per key.

    resolve_env(global, job, step) gives step > job > global precedence.
    """
    merged: Dict[str, str] = {}
    for scope in scopes:
        if scope:
            merged.update({k: str(v) for k, v in scope.items()})
    return merged
