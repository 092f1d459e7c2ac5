# qualitygate_pipeline.py
# Quality gates for the Rust project: formatting, lint and docs run locally
# before every push (qualitygate pre-push); the full matrix adds build, tests
# and, on Linux, a leak-sanitized test run.
from __future__ import annotations

from qualitygate.step_workflows.rust import rust_pipeline


def pipeline():
    return rust_pipeline("Rust")
