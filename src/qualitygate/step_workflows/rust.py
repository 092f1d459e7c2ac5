# step_workflows/rust.py
from __future__ import annotations

from typing import Sequence

from ..dsl import environment, exe, pipeline, strict
from ..model import Environment, Pipeline, Step
from ..predicates import on_os

# The leak sanitizer only ships with the nightly toolchain, and only
# works on Linux.
LEAK_SANITIZER_OS = "Linux"


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def fmt_step(name: str = "cargo fmt", *, pre_push: bool = True) -> Step:
    """Formatting check; fails if any file would be reformatted."""
    return exe(
        name,
        "cargo",
        "fmt", "--", "--check", "--verbose",
        "--config", "format_code_in_doc_comments=true",
        "--config", "wrap_comments=true",
        pre_push=pre_push,
    )


def clippy_step(name: str = "Clippy", *, pre_push: bool = True) -> Step:
    return exe(name, "cargo", "clippy", "--", "-D", "warnings", pre_push=pre_push)


def doc_step(name: str = "cargo doc", *, pre_push: bool = True) -> Step:
    # warnings become errors through RUSTDOCFLAGS in the job scope
    return exe(name, "cargo", "doc", pre_push=pre_push)


def build_step(name: str = "Build") -> Step:
    return exe(name, "cargo", "build", "--verbose")


def run_tests_step(name: str = "Run tests") -> Step:
    return exe(name, "cargo", "test", "--verbose")


def nightly_toolchain_step(name: str = "Install nightly toolchain") -> Step:
    return exe(name, "rustup", "toolchain", "install", "nightly", when=on_os(LEAK_SANITIZER_OS))


def leak_check_step(name: str = "Check for memory leaks") -> Step:
    """Re-runs the whole test suite under the leak sanitizer."""
    return exe(
        name,
        "rustup", "run", "nightly", "cargo", "test", "--verbose",
        env={"RUSTFLAGS": "-Z sanitizer=leak"},
        when=on_os(LEAK_SANITIZER_OS),
    )


# ---------------------------------------------------------------------
# Stock pipeline
# ---------------------------------------------------------------------

DEFAULT_ENVIRONMENTS: Sequence[Environment] = (
    environment("ubuntu-latest", os="Linux"),
    environment("macos-latest", os="macOS"),
    environment("windows-latest", os="Windows"),
)


def rust_pipeline(
    name: str = "Rust",
    *,
    environments: Sequence[Environment] = DEFAULT_ENVIRONMENTS,
) -> Pipeline:
    """
    Format, lint, doc, build, test on every environment, then a second
    leak-sanitized test run where the sanitizer is available.
    """
    return pipeline(
        name,
        fmt_step(),
        clippy_step(),
        doc_step(),
        build_step(),
        run_tests_step(),
        nightly_toolchain_step(),
        leak_check_step(),
        environments=environments,
        env={"CARGO_TERM_COLOR": "always"},
        job_env=strict("rustdoc"),
    )
