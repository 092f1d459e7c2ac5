# cli.py
from __future__ import annotations

import contextlib
import logging
import signal
import sys
import threading
from pathlib import Path

import click

from qualitygate.errors import ConfigurationError
from qualitygate.hooks import HookExistsError, install_pre_push_hook
from qualitygate.local_gate import local_job, run_local_gate
from qualitygate.matrix import expand, select_environments
from qualitygate.result import Verdict
from qualitygate.runner import load_pipeline, run_pipeline
from qualitygate.ui.console import Console, get_console, set_console

DEFAULT_PIPELINE_FILE = "qualitygate_pipeline.py"

EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_ABORTED = 130


def find_pipeline_files() -> list[Path]:
    """
    Find all pipeline files in the current directory.

    Returns:
        List of Path objects for pipeline files
    """
    pipeline_files = []
    current_dir = Path(".")

    default_pipeline = current_dir / DEFAULT_PIPELINE_FILE
    if default_pipeline.exists():
        # The default wins over any other *_pipeline.py
        return [default_pipeline]

    for path in current_dir.glob("*_pipeline.py"):
        pipeline_files.append(path)

    return sorted(pipeline_files)


def discover_pipeline(pipeline_arg: str | None) -> Path:
    """
    Discover pipeline file from argument or default.

    Raises:
        SystemExit: If the pipeline cannot be found or is ambiguous
    """
    console = get_console()

    if pipeline_arg:
        pipeline_path = Path(pipeline_arg)
        if not pipeline_path.exists() and pipeline_path.suffix != ".py":
            pipeline_path = Path(str(pipeline_path) + ".py")
        if not pipeline_path.exists():
            console.print_error(
                "Pipeline file not found",
                f"Could not find pipeline file: {pipeline_arg}",
                suggestion="Create a pipeline file or specify a different path:\n  qualitygate run --pipeline my_pipeline.py",
            )
            sys.exit(EXIT_CONFIG)
        return pipeline_path

    pipeline_files = find_pipeline_files()

    if len(pipeline_files) == 0:
        console.print_error(
            "No pipeline file found",
            "Could not find any pipeline files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_PIPELINE_FILE}",
                "  *_pipeline.py",
            ],
            suggestion=f"Create a pipeline file:\n  {DEFAULT_PIPELINE_FILE}\n\nOr specify one explicitly:\n  qualitygate run --pipeline my_pipeline.py",
        )
        sys.exit(EXIT_CONFIG)

    if len(pipeline_files) > 1:
        file_list = "\n".join(f"  {f}" for f in pipeline_files)
        console.print_error(
            "Multiple pipeline files found",
            "Found multiple pipeline files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a pipeline explicitly:\n  qualitygate run --pipeline {pipeline_files[0]}",
        )
        sys.exit(EXIT_CONFIG)

    return pipeline_files[0]


def _load(pipeline_arg: str | None):
    path = discover_pipeline(pipeline_arg)
    return path, load_pipeline(path)


def _config_error(e: ConfigurationError) -> None:
    get_console().print_error(
        "Invalid pipeline",
        e.message,
        details=[f"{k}: {v}" for k, v in e.details.items()] or None,
    )
    sys.exit(EXIT_CONFIG)


@contextlib.contextmanager
def cancel_on_signals(cancel: threading.Event):
    """Turn SIGINT/SIGTERM into a cancellation request for running jobs."""
    def handler(signum, frame):
        get_console().print_info(f"\nReceived signal {signum}, cancelling run...")
        cancel.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, handler)
        except ValueError:
            # not in the main thread; leave default handling in place
            pass
    try:
        yield cancel
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and per-step log records)",
)
@click.pass_context
def cli(ctx, debug):
    """qualitygate: ordered, fail-fast quality gates over an environment matrix."""
    console = Console(debug=debug)
    set_console(console)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


pipeline_option = click.option(
    "--pipeline",
    "pipeline_arg",
    default=None,
    envvar="QUALITYGATE_PIPELINE",
    help=f"Pipeline file path (defaults to {DEFAULT_PIPELINE_FILE} if present)",
)


@cli.command()
@pipeline_option
@click.option("--workers", default=None, type=int, envvar="QUALITYGATE_WORKERS", help="Number of jobs run in parallel (default: one per environment)")
@click.option("--only", multiple=True, help="Run only the named environment (repeatable)")
@click.option("--report", default=None, type=click.Path(dir_okay=False), help="Write the run verdict as JSON")
@click.pass_context
def run(ctx, pipeline_arg, workers, only, report):
    """Run the full pipeline across its environment matrix."""
    console = get_console()

    try:
        path, pipeline = _load(pipeline_arg)
        pipeline = select_environments(pipeline, only)
        console.print_run_started(
            pipeline=pipeline.name,
            source=path.name,
            job_count=len(pipeline.environments),
        )
        with cancel_on_signals(threading.Event()) as cancel:
            verdict = run_pipeline(
                pipeline,
                repo_root=".",
                max_workers=workers,
                cancel=cancel,
            )
    except ConfigurationError as e:
        _config_error(e)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_FAILED)

    console.print_results(verdict)
    if report:
        Path(report).write_text(verdict.to_json())
        console.print_info(f"Report written to {report}")

    if verdict.verdict is Verdict.FAIL:
        sys.exit(EXIT_FAILED)
    if verdict.verdict is Verdict.ABORTED:
        sys.exit(EXIT_ABORTED)


@cli.command()
@pipeline_option
@click.option("--only", multiple=True, help="Show only the named environment (repeatable)")
@click.option("--pre-push", "pre_push", is_flag=True, default=False, help="Show the local pre-push gate instead")
def plan(pipeline_arg, only, pre_push):
    """Show the jobs and steps a run would execute, without running them."""
    console = get_console()
    try:
        _path, pipeline = _load(pipeline_arg)
        if pre_push:
            jobs = [local_job(pipeline)]
        else:
            jobs = expand(select_environments(pipeline, only))
    except ConfigurationError as e:
        _config_error(e)
    console.print_plan(jobs)


@cli.command("pre-push")
@pipeline_option
def pre_push(pipeline_arg):
    """Run the local gate. Exit 0 allows the push, non-zero rejects it."""
    console = get_console()

    try:
        _path, pipeline = _load(pipeline_arg)
        with cancel_on_signals(threading.Event()) as cancel:
            result = run_local_gate(pipeline, repo_root=".", cancel=cancel)
    except ConfigurationError as e:
        _config_error(e)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_FAILED)

    console.print_gate_result(result)
    if not result.passed:
        sys.exit(EXIT_FAILED)


@cli.command("install-hook")
@click.option("--force", is_flag=True, default=False, help="Replace an existing pre-push hook")
def install_hook(force):
    """Install a git pre-push hook that runs `qualitygate pre-push`."""
    console = get_console()
    try:
        hook = install_pre_push_hook(force=force)
    except HookExistsError as e:
        console.print_error("Hook already installed", str(e))
        sys.exit(EXIT_FAILED)
    except FileNotFoundError:
        console.print_error(
            "Git command not found",
            "Could not find git command.",
            suggestion="Install Git and run this inside a repository.",
        )
        sys.exit(EXIT_FAILED)
    except Exception as e:
        console.print_error("Could not install hook", "Is this a git repository?", details=[str(e)])
        sys.exit(EXIT_FAILED)
    console.print_info(f"Installed pre-push hook: {hook}")


if __name__ == "__main__":
    cli()
