# src/qualitygate/dsl.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import ConfigurationError
from .model import Environment, Pipeline, Step
from .predicates import PredicateLike


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    cwd: str | None = None,
    env: Optional[Mapping[str, Any]] = None,
    when: PredicateLike = None,
    pre_push: bool = False,
) -> Step:
    """Create a shell step."""
    return Step(
        name=name,
        run=cmd,
        cwd=cwd,
        env=_stringify(env),
        when=when,
        pre_push=pre_push,
    )


def exe(
    name: str,
    program: str,
    *args: str,
    cwd: str | None = None,
    env: Optional[Mapping[str, Any]] = None,
    when: PredicateLike = None,
    pre_push: bool = False,
) -> Step:
    """Create a step that runs ``program`` directly with ``args`` (no shell)."""
    if not args:
        # An empty argument list would make the step a shell line
        raise ConfigurationError(f"exe({name!r}) needs at least one argument; use sh() instead")
    return Step(
        name=name,
        run=program,
        args=tuple(str(a) for a in args),
        cwd=cwd,
        env=_stringify(env),
        when=when,
        pre_push=pre_push,
    )


def _stringify(env: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    # force values to str for env compatibility
    return {k: str(v) for k, v in (env or {}).items()}


# ---------------------------------------------------------------------
# Strict mode
# ---------------------------------------------------------------------

# tool -> env scope that makes the tool treat its own warnings as errors
STRICT_MODE: Dict[str, Dict[str, str]] = {
    "rustdoc": {"RUSTDOCFLAGS": "-Dwarnings"},
    "rustc": {"RUSTFLAGS": "-Dwarnings"},
    "python": {"PYTHONWARNINGS": "error"},
    "sphinx": {"SPHINXOPTS": "-W"},
}


def strict(*tools: str) -> Dict[str, str]:
    """
    Env scope enabling strict mode for ``tools``.

        job_env=strict("rustdoc")  ->  {"RUSTDOCFLAGS": "-Dwarnings"}
    """
    scope: Dict[str, str] = {}
    for tool in tools:
        if tool not in STRICT_MODE:
            raise ConfigurationError(
                f"No strict mode known for {tool!r}",
                details={"known": sorted(STRICT_MODE)},
            )
        scope.update(STRICT_MODE[tool])
    return scope


# ---------------------------------------------------------------------
# Environments / matrix
# ---------------------------------------------------------------------

def environment(name: str, *, env: Optional[Mapping[str, Any]] = None, **attrs: Any) -> Environment:
    """environment("ubuntu-latest", os="Linux")"""
    return Environment(name=name, attrs=attrs, env=_stringify(env))


class Matrix:
    """
    Minimal matrix helper: one environment per value of a single attribute.

    Example:
        matrix("os", ["Linux", "macOS", "Windows"]).environments()
    """
    def __init__(self, key: str, values: Iterable[Any]):
        self.key = key
        self.values = list(values)

    def environments(self, **shared: Any) -> List[Environment]:
        return [Environment(name=str(v), attrs={**shared, self.key: v}) for v in self.values]


def matrix(key: str, values: Iterable[Any]) -> Matrix:
    return Matrix(key, values)


# ---------------------------------------------------------------------
# Pipeline helper
# ---------------------------------------------------------------------

def pipeline(
    name: str,
    *steps: Step,
    environments: Sequence[Environment],
    env: Optional[Mapping[str, Any]] = None,
    job_env: Optional[Mapping[str, Any]] = None,
) -> Pipeline:
    """
    Pipeline definition helper.

        def pipeline():
            return qg.pipeline(
                "ci",
                sh("fmt", "cargo fmt -- --check", pre_push=True),
                sh("test", "cargo test"),
                environments=matrix("os", ["Linux", "macOS"]).environments(),
            )
    """
    return Pipeline(
        name=name,
        steps=tuple(steps),
        environments=tuple(environments),
        env=_stringify(env),
        job_env=_stringify(job_env),
    )

