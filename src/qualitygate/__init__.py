from .dsl import sh, exe, environment, matrix, pipeline, strict
from .errors import ConfigurationError, JobAborted, QualityGateError, StepFailure
from .local_gate import run_local_gate
from .matrix import expand
from .model import Environment, Job, Pipeline, Step, resolve_env
from .predicates import evaluates, on_os, parse_predicate
from .result import JobResult, JobState, RunVerdict, Verdict
from .runner import load_pipeline, run_job, run_pipeline

__all__ = [
    "sh", "exe", "environment", "matrix", "pipeline", "strict",
    "ConfigurationError", "JobAborted", "QualityGateError", "StepFailure",
    "run_local_gate", "expand",
    "Environment", "Job", "Pipeline", "Step", "resolve_env",
    "evaluates", "on_os", "parse_predicate",
    "JobResult", "JobState", "RunVerdict", "Verdict",
    "load_pipeline", "run_job", "run_pipeline",
]
