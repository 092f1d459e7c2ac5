"""Shared fixtures: a recording fake invoker and the six-step sample pipeline."""

import sys
import threading
from pathlib import Path

import pytest

from qualitygate.dsl import environment, pipeline, sh
from qualitygate.predicates import on_os
from qualitygate.runner import Invocation
from qualitygate.ui.console import Console, set_console

# Every environment exports its own name so a fake invoker can tell jobs apart
ENV_VAR = "QG_TEST_ENV"


class FakeInvoker:
    """
    Records every invocation and returns canned exit codes.

    ``failures`` maps (environment, step) -> exit code; (None, step) applies to
    every environment.
    """

    def __init__(self, failures=None, on_call=None):
        self.failures = failures or {}
        self.on_call = on_call
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, step, env, cwd, cancel):
        where = env.get(ENV_VAR)
        with self._lock:
            self.calls.append((where, step.name, dict(env)))
        if self.on_call is not None:
            self.on_call(step, env, cancel)
        code = self.failures.get((where, step.name), self.failures.get((None, step.name), 0))
        return Invocation(
            exit_code=code,
            stdout=f"{step.name} stdout\n",
            stderr="boom\n" if code else "",
        )

    def steps_for(self, where):
        return [name for w, name, _env in self.calls if w == where]


@pytest.fixture(autouse=True)
def quiet_console():
    console = Console()
    set_console(console)
    return console


@pytest.fixture
def sample_pipeline():
    """Linux/macOS/Windows x [format, lint, doc, build, test, leak-sanitizer]."""
    return pipeline(
        "sample",
        sh("format", "fmt --check", pre_push=True),
        sh("lint", "lint -D warnings", pre_push=True),
        sh("doc", "doc", pre_push=True),
        sh("build", "build"),
        sh("test", "test"),
        sh("leak-sanitizer", "test --leaks", when=on_os("Linux")),
        environments=[
            environment("Linux", os="Linux", env={ENV_VAR: "Linux"}),
            environment("macOS", os="macOS", env={ENV_VAR: "macOS"}),
            environment("Windows", os="Windows", env={ENV_VAR: "Windows"}),
        ],
    )


def python_cmd(code: str) -> str:
    """Shell line running ``code`` with the current interpreter."""
    exe = Path(sys.executable).as_posix()
    return f'"{exe}" -c "{code}"'
